# Color science utilities
"""
Transfer functions and color space conversions shared by every stage.

All functions accept Python scalars or NumPy arrays and are pure: they hold
no state and can be called from any thread.
"""

import numpy as np

# Luminance weights for linear sRGB primaries (Rec. 709)
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)

# Approximate maximum OKLab chroma for in-gamut sRGB colors.
# Actual max is ~0.323 (pure magenta).
UNIFORM_MAX_CHROMA = 0.33

# Linear sRGB -> LMS cone response (Ottosson 2020)
_RGB_TO_LMS = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])

# Cube-rooted LMS -> OKLab
_LMS_TO_OKLAB = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660],
])


def linear_to_perceptual(x):
    """Inverse sRGB EOTF (IEC 61966-2-1): linear light -> perceptual sRGB."""
    x = np.asarray(x, dtype=np.float64)
    # Negative inputs take the linear segment; the power branch only sees x > 0.0031308
    safe = np.maximum(x, 0.0031308)
    result = np.where(x <= 0.0031308, 12.92 * x, 1.055 * np.power(safe, 1.0 / 2.4) - 0.055)
    return result if result.ndim else float(result)


def perceptual_to_linear(x):
    """sRGB EOTF (IEC 61966-2-1): perceptual sRGB -> linear light."""
    x = np.asarray(x, dtype=np.float64)
    safe = np.maximum(x, 0.04045)
    result = np.where(x <= 0.04045, x / 12.92, np.power((safe + 0.055) / 1.055, 2.4))
    return result if result.ndim else float(result)


def to_uniform_space(r, g, b):
    """
    Convert linear sRGB to OKLab.

    Args:
        r, g, b: Linear channel values (scalars or equally shaped arrays).

    Returns:
        (L, a, b) where L is ~[0, 1] for in-gamut colors and a/b are the
        opponent channels (roughly +/-0.3).
    """
    rgb = np.stack(np.broadcast_arrays(
        np.asarray(r, dtype=np.float64),
        np.asarray(g, dtype=np.float64),
        np.asarray(b, dtype=np.float64),
    ), axis=-1)
    lms = rgb @ _RGB_TO_LMS.T
    lms_ = np.cbrt(np.maximum(lms, 0.0))
    lab = lms_ @ _LMS_TO_OKLAB.T
    big_l, ok_a, ok_b = lab[..., 0], lab[..., 1], lab[..., 2]
    if big_l.ndim == 0:
        return float(big_l), float(ok_a), float(ok_b)
    return big_l, ok_a, ok_b


def chroma(a, b):
    """Chroma: Euclidean norm of the opponent channels."""
    return np.hypot(a, b)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Relative luminance of linear RGB, reduced over the last axis."""
    return np.asarray(rgb, dtype=np.float32) @ LUMA_WEIGHTS


def smoothstep(t):
    """Hermite smoothstep: 0 at t<=0, 1 at t>=1, C1 in between."""
    t = np.clip(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def hsv_hue(rgb: np.ndarray):
    """
    HSV hue in degrees [0, 360) of RGB triples along the last axis.

    Returns (hue, chroma). Hue is 0 where chroma is zero.
    """
    rgb = np.asarray(rgb, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    max_ch = np.max(rgb, axis=-1)
    min_ch = np.min(rgb, axis=-1)
    c = max_ch - min_ch
    safe_c = np.where(c < 1e-6, 1.0, c)

    hue = np.select(
        [np.abs(max_ch - r) < 1e-6, np.abs(max_ch - g) < 1e-6],
        [
            60.0 * np.mod((g - b) / safe_c, 6.0),
            60.0 * ((b - r) / safe_c + 2.0),
        ],
        default=60.0 * ((r - g) / safe_c + 4.0),
    )
    hue = np.where(c < 1e-6, 0.0, np.mod(hue, 360.0))
    return hue, c
