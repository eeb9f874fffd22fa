# Vibrance stage
"""
Selective saturation with skin-tone protection.

Saturation is measured as OKLab chroma normalised by the in-gamut maximum.
Positive vibrance boosts low-saturation pixels the most, negative vibrance
mutes high-saturation pixels the most, and warm hues typical of skin get
only 30% of the effect.
"""

import numpy as np

from darkroom.config import settings
from ..utils.color import (
    UNIFORM_MAX_CHROMA,
    chroma,
    hsv_hue,
    linear_to_perceptual,
    luminance,
    smoothstep,
    to_uniform_space,
)
from ..utils.image_buf import PixelBuffer
from .module import ProcessingModule
from .params import EditParams
from .saturation import blend_from_luminance

_SKIN = settings.VIBRANCE_DEFAULTS
RAMP_IN_START = _SKIN["skin_ramp_in_start"]
PLATEAU_START = _SKIN["skin_plateau_start"]
PLATEAU_END = _SKIN["skin_plateau_end"]
RAMP_OUT_END = _SKIN["skin_ramp_out_end"]
SKIN_PROTECTION = _SKIN["skin_protection"]


def skin_tone_weight(rgb: np.ndarray) -> np.ndarray:
    """
    How much each linear RGB pixel looks like skin, 0.0 to 1.0.

    Hue is measured in display-gamma HSV so angles match the usual HSV
    wheel. The window wraps through 0 degrees: ramp in 350->5, plateau
    5->55, ramp out 55->85. Achromatic pixels weigh 0.
    """
    encoded = linear_to_perceptual(np.maximum(np.asarray(rgb, dtype=np.float64), 0.0))
    hue, hsv_chroma = hsv_hue(encoded)

    # Signed angle so the window is contiguous across 360/0
    h = np.where(hue >= RAMP_IN_START, hue - 360.0, hue)
    ramp_in = smoothstep((h - (RAMP_IN_START - 360.0)) / (PLATEAU_START - (RAMP_IN_START - 360.0)))
    ramp_out = smoothstep((RAMP_OUT_END - h) / (RAMP_OUT_END - PLATEAU_END))
    weight = np.where(h < PLATEAU_START, ramp_in, np.where(h > PLATEAU_END, ramp_out, 1.0))

    in_window = (hue >= RAMP_IN_START) | (hue <= RAMP_OUT_END)
    return np.where(in_window & (hsv_chroma >= 1e-6), weight, 0.0)


def vibrance_effect(data: np.ndarray, vibrance: float) -> np.ndarray:
    """Per-pixel blend offset ``effect`` for the luminance blend ``1 + effect``."""
    strength = vibrance / 100.0
    sign = np.sign(strength)

    _, ok_a, ok_b = to_uniform_space(data[..., 0], data[..., 1], data[..., 2])
    sat = np.clip(chroma(ok_a, ok_b) / UNIFORM_MAX_CHROMA, 0.0, 1.0)
    effect = np.maximum(strength * (1.0 - sign * sat), -1.0)

    max_ch = np.max(data, axis=-1)
    protection = 1.0 - skin_tone_weight(data) * SKIN_PROTECTION
    return np.where(max_ch > 1e-6, effect * protection, effect)


class Vibrance(ProcessingModule):
    name = "vibrance"

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        if params.vibrance == 0.0:
            return buffer

        effect = vibrance_effect(buffer.data, params.vibrance)
        y = luminance(buffer.data)
        return buffer.with_data(blend_from_luminance(buffer.data, y, 1.0 + effect))
