# White balance stage
"""
Temperature/tint white balance via Bradford chromatic adaptation.

The whole correction collapses into one 3x3 matrix per parameter set::

    sRGB linear -> XYZ (D65) -> Bradford CAT (target white -> 5500 K) -> XYZ -> sRGB linear

``wb_matrix`` is the only place the matrix is derived. The compute mirror
uploads exactly this matrix so both backends agree numerically.
"""

from typing import Tuple
import numpy as np

from ..utils.image_buf import PixelBuffer
from ..utils.logger import get_logger
from .module import ProcessingModule
from .params import EditParams

logger = get_logger(__name__)

# sRGB <-> XYZ (IEC 61966-2-1, D65 reference white)
SRGB_TO_XYZ = np.array([
    [0.4123907993, 0.3575843394, 0.1804807884],
    [0.2126390059, 0.7151686788, 0.0721923154],
    [0.0193308187, 0.1191947798, 0.9505321522],
])

XYZ_TO_SRGB = np.array([
    [3.2409699419, -1.5373831776, -0.4986107603],
    [-0.9692436363, 1.8759675015, 0.0415550574],
    [0.0556300797, -0.2039769589, 1.0569715142],
])

# Bradford cone response (ICC v4)
BRADFORD = np.array([
    [0.8951000, 0.2664000, -0.1614000],
    [-0.7502000, 1.7135000, 0.0367000],
    [0.0389000, -0.0685000, 1.0296000],
])

BRADFORD_INV = np.array([
    [0.9869929, -0.1470543, 0.1599627],
    [0.4323053, 0.5183603, 0.0492912],
    [-0.0085287, 0.0400428, 0.9684867],
])

REFERENCE_TEMP = 5500.0
TEMP_MIN = 1667.0
TEMP_MAX = 25000.0

# Kelvin step for the finite-difference locus tangent
TANGENT_STEP = 50.0
# Tint slider units per unit of Duv
TINT_SCALE = 3000.0

IDENTITY_TOLERANCE = 1e-6


def planckian_xy(temp: float) -> Tuple[float, float]:
    """
    CIE xy chromaticity of a blackbody at ``temp`` kelvin.

    Cubic approximation from Kang et al. (2002), "Design of advanced color
    temperature control system for HDTV applications". Valid 1667-25000 K.
    """
    t = float(temp)
    t2 = t * t
    t3 = t2 * t

    if t <= 4000.0:
        x = -0.2661239e9 / t3 - 0.2343589e6 / t2 + 0.8776956e3 / t + 0.179910
    else:
        x = -3.0258469e9 / t3 + 2.1070379e6 / t2 + 0.2226347e3 / t + 0.240390

    x2 = x * x
    x3 = x2 * x

    if t <= 2222.0:
        y = -1.1063814 * x3 - 1.34811020 * x2 + 2.18555832 * x - 0.20219683
    elif t <= 4000.0:
        y = -0.9549476 * x3 - 1.37418593 * x2 + 2.09137015 * x - 0.16748867
    else:
        y = 3.0817580 * x3 - 5.87338670 * x2 + 3.75112997 * x - 0.37001483

    return x, y


def xy_to_uv60(x: float, y: float) -> Tuple[float, float]:
    """CIE xy -> CIE 1960 UCS (u, v)."""
    d = -2.0 * x + 12.0 * y + 3.0
    return 4.0 * x / d, 6.0 * y / d


def uv60_to_xy(u: float, v: float) -> Tuple[float, float]:
    """CIE 1960 UCS (u, v) -> CIE xy."""
    d = 2.0 * u - 8.0 * v + 4.0
    return 3.0 * u / d, 2.0 * v / d


def planckian_with_tint(temp: float, tint: float) -> Tuple[float, float]:
    """
    Locus point at ``temp`` moved perpendicular to the locus by ``tint``.

    The offset happens in CIE 1960 UCS, where Duv is defined. Positive tint
    moves towards magenta, negative towards green.
    """
    x, y = planckian_xy(temp)
    if abs(tint) < 1e-6:
        return x, y

    u, v = xy_to_uv60(x, y)

    t_lo = min(max(temp - TANGENT_STEP, TEMP_MIN), TEMP_MAX)
    t_hi = min(max(temp + TANGENT_STEP, TEMP_MIN), TEMP_MAX)
    u_lo, v_lo = xy_to_uv60(*planckian_xy(t_lo))
    u_hi, v_hi = xy_to_uv60(*planckian_xy(t_hi))

    du = u_hi - u_lo
    dv = v_hi - v_lo
    length = np.hypot(du, dv)
    if length < 1e-12:
        return x, y

    perp_u = dv / length
    perp_v = -du / length

    duv = tint / TINT_SCALE
    return uv60_to_xy(u + perp_u * duv, v + perp_v * duv)


def xy_to_xyz(x: float, y: float) -> np.ndarray:
    """Chromaticity to XYZ tristimulus with Y = 1."""
    if abs(y) < 1e-10:
        return np.array([0.0, 1.0, 0.0])
    return np.array([x / y, 1.0, (1.0 - x - y) / y])


def bradford_cat(src_xyz: np.ndarray, dst_xyz: np.ndarray) -> np.ndarray:
    """von Kries scaling in Bradford cone space mapping ``src_xyz`` onto ``dst_xyz``."""
    src_lms = BRADFORD @ src_xyz
    dst_lms = BRADFORD @ dst_xyz
    scale = np.diag(dst_lms / src_lms)
    return BRADFORD_INV @ scale @ BRADFORD


def wb_matrix(temp: float, tint: float) -> np.ndarray:
    """
    Combined linear-sRGB white balance matrix for ``(temp, tint)``.

    Temperature is clamped to 1667-25000 K. Derivation runs in float64; the
    returned (3, 3) matrix is float32, the precision both backends apply.
    """
    temp = min(max(float(temp), TEMP_MIN), TEMP_MAX)
    tint = float(tint)

    src_xyz = xy_to_xyz(*planckian_with_tint(temp, tint))
    dst_xyz = xy_to_xyz(*planckian_xy(REFERENCE_TEMP))

    adapt = bradford_cat(src_xyz, dst_xyz)
    combined = XYZ_TO_SRGB @ adapt @ SRGB_TO_XYZ
    return combined.astype(np.float32)


def is_identity_matrix(matrix: np.ndarray) -> bool:
    return bool(np.all(np.abs(matrix - np.eye(3, dtype=np.float32)) < IDENTITY_TOLERANCE))


def apply_matrix(data: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    ``max(M . rgb, 0)`` for every pixel of an (H, W, 3) array.

    Written channel by channel, with no reduction across pixels, so any
    tiling of ``data`` produces bit-identical results.
    """
    r = data[..., 0]
    g = data[..., 1]
    b = data[..., 2]
    out = np.empty_like(data, dtype=np.float32)
    for c in range(3):
        out[..., c] = matrix[c, 0] * r + matrix[c, 1] * g + matrix[c, 2] * b
    np.maximum(out, 0.0, out=out)
    return out


class WhiteBalance(ProcessingModule):
    name = "white_balance"

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        matrix = wb_matrix(params.wb_temp, params.wb_tint)
        if is_identity_matrix(matrix):
            return buffer

        logger.debug("White balance %.0fK tint %.1f", params.wb_temp, params.wb_tint)
        return buffer.with_data(apply_matrix(buffer.data, matrix))
