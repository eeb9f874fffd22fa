# Saturation stage
"""
Uniform saturation: every pixel is pushed away from (or towards) its own
luminance by the same factor, regardless of how saturated it already is.
"""

import numpy as np

from ..utils.color import luminance
from ..utils.image_buf import PixelBuffer
from .module import ProcessingModule
from .params import EditParams


def blend_from_luminance(data: np.ndarray, y: np.ndarray, blend) -> np.ndarray:
    """``max(Y + blend * (c - Y), 0)`` per channel; ``blend`` is scalar or per pixel."""
    y = y[..., np.newaxis]
    blend = np.asarray(blend, dtype=np.float32)
    if blend.ndim:
        blend = blend[..., np.newaxis]
    out = y + blend * (data - y)
    np.maximum(out, 0.0, out=out)
    return out


class Saturation(ProcessingModule):
    name = "saturation"

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        if params.saturation == 0.0:
            return buffer

        blend = max(1.0 + params.saturation / 100.0, 0.0)
        y = luminance(buffer.data)
        return buffer.with_data(blend_from_luminance(buffer.data, y, blend))
