# Exposure stage
"""
Exposure compensation in stops: every channel scales by ``2 ** ev``.
"""

import numpy as np

from ..utils.image_buf import PixelBuffer
from .module import ProcessingModule
from .params import EditParams


def exposure_multiplier(ev: float) -> np.float32:
    """Linear gain for ``ev`` stops, shared with the compute mirror."""
    return np.float32(2.0 ** float(ev))


class Exposure(ProcessingModule):
    name = "exposure"

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        if params.exposure == 0.0:
            return buffer
        # No clamping in either direction; values above 1.0 are kept
        return buffer.with_data(buffer.data * exposure_multiplier(params.exposure))
