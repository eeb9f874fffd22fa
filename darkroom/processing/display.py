# Display encoding
"""
Linear float buffer -> sRGB-encoded 8-bit samples.

This is the only place scene-referred values are clipped: input is clamped
to [0, 1] before the lookup.
"""

from functools import lru_cache

import numpy as np

from darkroom.config import settings
from ..utils.color import linear_to_perceptual
from ..utils.errors import ConfigurationError
from ..utils.image_buf import PixelBuffer, ensure_valid

DISPLAY_LUT_SIZE = settings.PIPELINE_DEFAULTS["display_lut_size"]


@lru_cache(maxsize=4)
def build_display_lut(size: int = DISPLAY_LUT_SIZE) -> np.ndarray:
    """
    Table of ``size`` entries mapping linear i/(size-1) to encoded code values.

    Entries are unrounded floats in [0, 255]; rounding happens after
    interpolation. The returned array is shared and read-only.
    """
    if size < 2:
        raise ConfigurationError(f"Display table needs at least 2 entries, got {size}", setting_name="size")
    v = np.arange(size, dtype=np.float64) / (size - 1)
    lut = (linear_to_perceptual(v) * 255.0).astype(np.float32)
    lut.flags.writeable = False
    return lut


def encode_array(data: np.ndarray, size: int = DISPLAY_LUT_SIZE) -> np.ndarray:
    """Encode an (..., 3) linear array to uint8 of the same shape."""
    lut = build_display_lut(size)
    last = size - 1

    idx = np.clip(data, 0.0, 1.0).astype(np.float32) * np.float32(last)
    i0 = np.minimum(idx.astype(np.int64), last - 1)
    frac = idx - i0.astype(np.float32)
    value = lut[i0] * (np.float32(1.0) - frac) + lut[i0 + 1] * frac

    return np.floor(value + np.float32(0.5)).clip(0, 255).astype(np.uint8)


def encode_display(buffer: PixelBuffer, size: int = DISPLAY_LUT_SIZE) -> np.ndarray:
    """Display-ready uint8 RGB array of shape (height, width, 3)."""
    ensure_valid(buffer, "display")
    return encode_array(buffer.data, size)


def encode_display_rgba(buffer: PixelBuffer, size: int = DISPLAY_LUT_SIZE) -> np.ndarray:
    """Like ``encode_display`` with an opaque alpha channel appended."""
    rgb = encode_display(buffer, size)
    rgba = np.full((buffer.height, buffer.width, 4), 255, dtype=np.uint8)
    rgba[:, :, :3] = rgb
    return rgba
