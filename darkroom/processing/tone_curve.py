# Tone curve stage
"""
Contrast / highlights / shadows / blacks as one monotonic lookup table.

The table is built over perceptual (sRGB-encoded) input, in zones::

    perceptual 0.00-0.15  blacks     (power curve with optional lift)
               0.10-0.35  shadows    (power curve, gamma = 3^-slider)
               0.35-0.65  midtones   (identity, contrast S-curve only)
               0.65-0.90  highlights (power curve, gamma = 3^-slider)
               full range contrast S-curve x^a / (x^a + (1-x)^a)

Zone edges are feathered over 5% with a Hermite smoothstep so the curve is
C0 and close to C1 everywhere. Table entries are indexed uniformly by
*linear* luminance and store linear output, so per-pixel application needs
no transfer-function evaluation: the perceptual encoding happens once per
entry at build time.

Pixels are scaled by ``new_Y / Y`` so channel ratios (hue) are preserved.
"""

import threading
from collections import OrderedDict
from typing import Dict, Optional, Tuple

import numpy as np

from darkroom.config import settings
from ..utils.color import (
    linear_to_perceptual,
    perceptual_to_linear,
    luminance,
    smoothstep,
)
from ..utils.errors import ConfigurationError
from ..utils.image_buf import PixelBuffer
from ..utils.logger import get_logger
from .module import ProcessingModule
from .params import EditParams

logger = get_logger(__name__)

LUT_SIZE = settings.PIPELINE_DEFAULTS["tone_lut_size"]
LUMINANCE_EPSILON = settings.PIPELINE_DEFAULTS["luminance_epsilon"]

_ZONES = settings.TONE_CURVE_ZONES
SHADOW_LO = _ZONES["shadow_lo"]
SHADOW_HI = _ZONES["shadow_hi"]
HIGHLIGHT_LO = _ZONES["highlight_lo"]
HIGHLIGHT_HI = _ZONES["highlight_hi"]
BLACKS_HI = _ZONES["blacks_hi"]
FEATHER = _ZONES["feather"]
BLACKS_LIFT = _ZONES["blacks_lift"]


def s_curve(x: np.ndarray, a: float) -> np.ndarray:
    """
    ``x^a / (x^a + (1-x)^a)``: fixed points 0, 0.5 and 1, monotonic for a > 0.

    a = 1 is identity; a > 1 steepens the midtones, a < 1 flattens them.
    """
    x = np.asarray(x, dtype=np.float64)
    inner = np.clip(x, 1e-12, 1.0 - 1e-12)
    xa = np.power(inner, a)
    result = xa / (xa + np.power(1.0 - inner, a))
    return np.where(x <= 0.0, 0.0, np.where(x >= 1.0, 1.0, result))


def _zone_curve(
    t: np.ndarray,
    base: np.ndarray,
    lo: float,
    hi: float,
    gamma: float,
) -> np.ndarray:
    """
    Power curve over [lo, hi] feathered into its neighbours.

    Below the zone the curve fades in from ``base`` (the curve so far); above
    it the curve fades out to the identity ``t``.
    """
    width = hi - lo
    n = np.clip((t - lo) / width, 0.0, 1.0)
    zone_val = lo + np.power(n, gamma) * width

    fade_in = smoothstep((t - (lo - FEATHER)) / FEATHER)
    below = base * (1.0 - fade_in) + zone_val * fade_in
    above_blend = smoothstep((t - hi) / FEATHER)
    above = zone_val * (1.0 - above_blend) + t * above_blend

    curve = np.where(t <= lo, below, np.where(t >= hi, above, zone_val))
    in_reach = (t > lo - FEATHER) & (t < hi + FEATHER)
    return np.where(in_reach, curve, base)


def _blacks_curve(out: np.ndarray, blacks: float) -> np.ndarray:
    """Lift (positive) or crush (negative) the [0, BLACKS_HI] range."""
    gamma = 3.0 ** (-blacks)
    lift = max(blacks, 0.0) * BLACKS_LIFT
    span = BLACKS_HI - lift
    n = np.clip(out / BLACKS_HI, 0.0, 1.0)
    blacks_val = lift + np.power(n, gamma) * span

    blend = smoothstep((out - BLACKS_HI) / FEATHER)
    feathered = blacks_val * (1.0 - blend) + out * blend

    curve = np.where(out >= BLACKS_HI, feathered, blacks_val)
    return np.where(out < BLACKS_HI + FEATHER, curve, out)


def build_tone_lut(
    contrast: float = 0.0,
    highlights: float = 0.0,
    shadows: float = 0.0,
    blacks: float = 0.0,
    size: int = LUT_SIZE,
) -> np.ndarray:
    """
    Build the linear-in / linear-out tone table for one slider combination.

    Args:
        contrast, highlights, shadows, blacks: Slider values, -100..100.
        size: Number of entries (at least 2).

    Returns:
        float32 array of ``size`` non-decreasing entries.

    Raises:
        ConfigurationError: if ``size`` is below 2.
    """
    size = int(size)
    if size < 2:
        raise ConfigurationError(f"Tone table needs at least 2 entries, got {size}", setting_name="size")

    contrast = contrast / 100.0
    highlights = highlights / 100.0
    shadows = shadows / 100.0
    blacks = blacks / 100.0

    linear_in = np.arange(size, dtype=np.float64) / (size - 1)
    t = linear_to_perceptual(linear_in)
    out = t.copy()

    if shadows != 0.0:
        out = _zone_curve(t, out, SHADOW_LO, SHADOW_HI, 3.0 ** (-shadows))

    if highlights != 0.0:
        out = _zone_curve(t, out, HIGHLIGHT_LO, HIGHLIGHT_HI, 3.0 ** (-highlights))

    if contrast != 0.0:
        out = s_curve(out, 3.0 ** contrast)

    if blacks != 0.0:
        out = _blacks_curve(out, blacks)

    lut = perceptual_to_linear(np.clip(out, 0.0, 1.0)).astype(np.float32)

    # Single forward pass: every entry at least as large as its predecessor
    return np.maximum.accumulate(lut)


def lut_lerp(lut: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Look up ``y`` in [0, 1] with linear interpolation between the two nearest entries."""
    last = lut.shape[0] - 1
    idx = np.asarray(y, dtype=np.float32) * np.float32(last)
    i0 = np.minimum(idx.astype(np.int64), last - 1)
    i0 = np.maximum(i0, 0)
    frac = idx - i0.astype(np.float32)
    return lut[i0] * (np.float32(1.0) - frac) + lut[i0 + 1] * frac


def apply_tone_lut(data: np.ndarray, lut: np.ndarray) -> np.ndarray:
    """
    Scale each pixel of ``data`` so its luminance follows ``lut``.

    Above Y = 1 the table is extended linearly with the slope of its last
    two entries. Pixels darker than the luminance epsilon are passed
    through unchanged, negative channels included.
    """
    last = lut.shape[0] - 1
    lut_top = lut[last]
    lut_slope = (lut[last] - lut[last - 1]) * np.float32(last)

    y = luminance(data)
    dark = y < LUMINANCE_EPSILON
    safe_y = np.where(dark, np.float32(1.0), y)

    in_range = lut_lerp(lut, np.minimum(safe_y, np.float32(1.0))) / safe_y
    extended = np.maximum((lut_top + lut_slope * (safe_y - np.float32(1.0))) / safe_y, np.float32(0.0))

    scale = np.where(safe_y <= 1.0, in_range, extended).astype(np.float32)

    out = np.maximum(data * scale[..., np.newaxis], np.float32(0.0))
    return np.where(dark[..., np.newaxis], data, out).astype(np.float32)


class ToneLUTCache:
    """
    Bounded cache of built tone tables keyed by the slider tuple.

    Tables are keyed by ``(contrast, highlights, shadows, blacks, size)``;
    a changed value is simply a different key. Least recently used tables
    are evicted once ``max_entries`` is exceeded. Cached arrays are
    read-only, and one cache may be shared by stages running on several
    threads.
    """

    def __init__(self, max_entries: int = settings.PIPELINE_DEFAULTS["tone_lut_cache_size"]) -> None:
        self.max_entries = max(1, int(max_entries))
        self._tables: "OrderedDict[Tuple[float, ...], np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(params: EditParams, size: int = LUT_SIZE) -> Tuple[float, float, float, float, int]:
        return (
            float(params.contrast),
            float(params.highlights),
            float(params.shadows),
            float(params.blacks),
            int(size),
        )

    def get(self, params: EditParams, size: int = LUT_SIZE) -> np.ndarray:
        key = self.key_for(params, size)
        with self._lock:
            table = self._tables.get(key)
            if table is not None:
                self._tables.move_to_end(key)
                self.hits += 1
                return table

            self.misses += 1
            table = build_tone_lut(*key)
            table.flags.writeable = False
            self._tables[key] = table
            if len(self._tables) > self.max_entries:
                evicted, _ = self._tables.popitem(last=False)
                logger.debug("Evicted tone table %s", evicted)
            return table

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._tables), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, params: EditParams) -> bool:
        with self._lock:
            return self.key_for(params) in self._tables


default_cache = ToneLUTCache()


class ToneCurve(ProcessingModule):
    name = "tone_curve"

    def __init__(self, cache: Optional[ToneLUTCache] = None) -> None:
        self.cache = cache if cache is not None else default_cache

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        if (
            params.contrast == 0.0
            and params.highlights == 0.0
            and params.shadows == 0.0
            and params.blacks == 0.0
        ):
            return buffer

        lut = self.cache.get(params)
        return buffer.with_data(apply_tone_lut(buffer.data, lut))
