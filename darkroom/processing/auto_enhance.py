# Auto-enhance analyzer
"""
Histogram-driven suggestion of a complete parameter set.

Analysis happens in perceptual (sRGB-encoded) space, where thresholds are
intuitive. Highlights and shadows do most of the work; exposure gets only a
small nudge. The exposure nudge is fed forward into the percentiles before
the tonal controls are derived, so a brightened image does not also get
its (already lifted) shadows lifted again.

White balance uses near-neutral pixels (mid lightness, low OKLab chroma)
and leaves temperature/tint alone when too few of them exist, e.g. sunsets
or neon scenes with no reliable gray reference.
"""

from typing import NamedTuple, Tuple

import numpy as np

from darkroom.config import settings
from ..utils.color import (
    chroma,
    linear_to_perceptual,
    perceptual_to_linear,
    to_uniform_space,
)
from ..utils.image_buf import PixelBuffer
from ..utils.image_proxy import DEFAULT_PREVIEW_MAX_EDGE, create_proxy
from ..utils.logger import get_logger
from .params import EditParams

logger = get_logger(__name__)

CFG = settings.AUTO_ENHANCE_DEFAULTS

# Rec. 709 weights in double precision for statistics
_LUMA = np.array([0.2126, 0.7152, 0.0722])


class Percentiles(NamedTuple):
    """Display-gamma luminance percentiles of a buffer."""
    p1: float
    p5: float
    p10: float
    p50: float
    p95: float
    p99: float


def _percentile(sorted_values: np.ndarray, p: float) -> float:
    idx = int((p / 100.0) * (sorted_values.size - 1))
    return float(sorted_values[min(idx, sorted_values.size - 1)])


def _display_luminance(rgb: np.ndarray) -> np.ndarray:
    y = rgb @ _LUMA
    return linear_to_perceptual(np.maximum(y, 0.0))


def luminance_percentiles(buffer: PixelBuffer) -> Percentiles:
    """p1/p5/p10/p50/p95/p99 of sRGB-encoded luminance (nearest-rank, floored index)."""
    rgb = buffer.data.reshape(-1, 3).astype(np.float64)
    values = np.sort(np.atleast_1d(_display_luminance(rgb)))
    return Percentiles(*(_percentile(values, p) for p in (1, 5, 10, 50, 95, 99)))


def estimate_exposure(p50: float) -> float:
    """EV nudge towards perceptual mid-gray at partial strength, with a dead zone."""
    if p50 <= CFG["median_floor"]:
        return 0.0
    raw_ev = np.log2(CFG["target_mid"] / p50) * CFG["exposure_strength"]
    if abs(raw_ev) < CFG["exposure_dead_zone"]:
        return 0.0
    return float(np.clip(raw_ev, -CFG["exposure_max_ev"], CFG["exposure_max_ev"]))


def correct_percentile(p: float, ev: float) -> float:
    """Where percentile ``p`` lands after an ``ev`` exposure change."""
    if ev == 0.0:
        return p
    linear = perceptual_to_linear(p) * 2.0 ** ev
    return float(linear_to_perceptual(min(max(linear, 0.0), 1.0)))


def estimate_tone(p5: float, p10: float, p95: float) -> Tuple[float, float, float, float]:
    """
    (contrast, highlights, shadows, blacks) from exposure-corrected percentiles.

    Highlights and shadows follow a sqrt ramp past their thresholds; blacks
    counterbalance a shadow lift; contrast only rises for flat histograms.
    """
    highlights = 0.0
    if p95 > CFG["highlight_threshold"]:
        t = np.sqrt((p95 - CFG["highlight_threshold"]) / CFG["highlight_range"])
        highlights = -float(np.clip(t * 100.0, 0.0, 100.0))

    shadows = 0.0
    if p10 < CFG["shadow_threshold"]:
        t = np.sqrt((CFG["shadow_threshold"] - p10) / CFG["shadow_threshold"])
        shadows = float(np.clip(t * CFG["shadow_cap"], 0.0, CFG["shadow_cap"]))

    blacks = 0.0
    if shadows > CFG["blacks_trigger"]:
        blacks = -min(shadows * CFG["blacks_ratio"], CFG["blacks_cap"])

    contrast = 0.0
    spread = p95 - p5
    if spread < CFG["contrast_spread"]:
        contrast = float(np.clip(
            (CFG["contrast_spread"] - spread) / CFG["contrast_spread"] * CFG["contrast_cap"],
            0.0,
            CFG["contrast_cap"],
        ))

    return contrast, highlights, shadows, blacks


def estimate_white_balance(rgb: np.ndarray) -> Tuple[float, float]:
    """
    Gray-point (temperature, tint) from an (N, 3) linear array.

    Returns the pass-through (5500, 0) when fewer than 2% of pixels (and at
    least 3) are neutral candidates, or when their red or blue average is
    too dark to form a ratio.
    """
    default = (5500.0, 0.0)
    pixel_count = rgb.shape[0]

    ok_l, ok_a, ok_b = to_uniform_space(rgb[:, 0], rgb[:, 1], rgb[:, 2])
    neutral = (
        (ok_l > CFG["neutral_l_min"])
        & (ok_l < CFG["neutral_l_max"])
        & (chroma(ok_a, ok_b) < CFG["neutral_chroma_max"])
    )
    count = int(np.count_nonzero(neutral))
    required = max(pixel_count // CFG["neutral_fraction_divisor"], CFG["neutral_min_count"])
    if count < required:
        logger.debug("Gray-point WB skipped: %d of %d neutral candidates", count, pixel_count)
        return default

    avg_r = float(rgb[neutral, 0].mean())
    avg_b = float(rgb[neutral, 2].mean())
    floor = CFG["neutral_channel_floor"]
    if avg_r < floor or avg_b < floor:
        return default

    # log2(R/B) > 0 is a warm cast; correcting it lowers the temperature
    rb_log = np.log2(avg_r / avg_b)
    temp_shift = 0.0
    if abs(rb_log) > CFG["temp_dead_zone"]:
        temp_shift = float(np.clip(-rb_log * CFG["temp_scale"], -CFG["temp_shift_cap"], CFG["temp_shift_cap"]))

    # Green cast (a < 0) needs positive (magenta) tint
    avg_a = float(ok_a[neutral].mean())
    tint = 0.0
    if abs(avg_a) > CFG["tint_dead_zone"]:
        tint = float(np.clip(-avg_a * CFG["tint_scale"], -CFG["tint_cap"], CFG["tint_cap"]))

    temp = float(np.clip(5500.0 + temp_shift, CFG["temp_min"], CFG["temp_max"]))
    return temp, tint


def estimate_vibrance(rgb: np.ndarray) -> float:
    """Vibrance boost proportional to how desaturated the image is."""
    max_ch = rgb.max(axis=1)
    min_ch = rgb.min(axis=1)
    lit = max_ch >= CFG["saturation_floor"]
    if not np.any(lit):
        avg_sat = 0.0
    else:
        avg_sat = float(np.mean((max_ch[lit] - min_ch[lit]) / (max_ch[lit] + 1e-6)))
    return float(np.clip((1.0 - avg_sat) * CFG["vibrance_cap"], 0.0, CFG["vibrance_cap"]))


def analyze(buffer: PixelBuffer) -> EditParams:
    """
    Suggest a complete parameter set for ``buffer``.

    Read-only over its input. Crop and saturation are left at identity.
    Works at any resolution; ``analyze_preview`` is the low-latency entry.
    """
    if buffer is None or buffer.pixel_count == 0:
        return EditParams()

    rgb = buffer.data.reshape(-1, 3).astype(np.float64)
    pct = luminance_percentiles(buffer)

    ev = estimate_exposure(pct.p50)
    p5_c = correct_percentile(pct.p5, ev)
    p10_c = correct_percentile(pct.p10, ev)
    p95_c = correct_percentile(pct.p95, ev)

    contrast, highlights, shadows, blacks = estimate_tone(p5_c, p10_c, p95_c)
    wb_temp, wb_tint = estimate_white_balance(rgb)
    vibrance = estimate_vibrance(rgb)

    params = EditParams(
        exposure=ev,
        wb_temp=wb_temp,
        wb_tint=wb_tint,
        contrast=contrast,
        highlights=highlights,
        shadows=shadows,
        blacks=blacks,
        vibrance=vibrance,
    )
    logger.debug("Auto-enhance on %dx%d: %s", buffer.width, buffer.height, params)
    return params


def analyze_preview(buffer: PixelBuffer, max_edge: int = DEFAULT_PREVIEW_MAX_EDGE) -> EditParams:
    """``analyze`` on a box-averaged proxy whose longest edge is ``max_edge``."""
    proxy, _ = create_proxy(buffer, max_edge)
    return analyze(proxy)
