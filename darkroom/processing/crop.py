# Crop stage
"""
Normalized-rectangle crop. A direct region copy, no resampling.
"""

from typing import Tuple, NamedTuple

import numpy as np

from darkroom.config import settings
from ..utils.image_buf import PixelBuffer
from ..utils.logger import get_logger
from .module import ProcessingModule
from .params import EditParams

logger = get_logger(__name__)

PIXEL_EPSILON = settings.PIPELINE_DEFAULTS["crop_pixel_epsilon"]


class CropRect(NamedTuple):
    """Pixel rectangle for cropping (x, y, width, height)."""
    x: int
    y: int
    width: int
    height: int

    def to_slice(self) -> Tuple[slice, slice]:
        """Convert to numpy array slices (y_slice, x_slice)."""
        return (
            slice(self.y, self.y + self.height),
            slice(self.x, self.x + self.width)
        )

    def clamp(self, image_width: int, image_height: int) -> 'CropRect':
        """Clamp to image bounds: offset inside the image, size at least 1 pixel."""
        x = max(0, min(self.x, image_width - 1))
        y = max(0, min(self.y, image_height - 1))
        w = max(1, min(self.width, image_width - x))
        h = max(1, min(self.height, image_height - y))
        return CropRect(x, y, w, h)


def is_full_frame(params: EditParams) -> bool:
    return (
        params.crop_x == 0.0
        and params.crop_y == 0.0
        and params.crop_w == 1.0
        and params.crop_h == 1.0
    )


def crop_rect(width: int, height: int, params: EditParams) -> CropRect:
    """
    Pixel rectangle selected by the normalized crop of ``params``.

    Edges truncate towards zero after a small epsilon, so a fraction built
    as ``pixels / width`` maps back to the same pixel. Sizes are floored at
    one pixel and the result always lies inside a ``width`` x ``height`` image.
    """
    x = _to_pixels(params.crop_x, width, 0.0)
    y = _to_pixels(params.crop_y, height, 0.0)
    w = _to_pixels(params.crop_w, width, 1.0)
    h = _to_pixels(params.crop_h, height, 1.0)
    return CropRect(x, y, w, h).clamp(width, height)


def _to_pixels(fraction: float, extent: int, floor: float) -> int:
    return int(max(fraction * extent + PIXEL_EPSILON, floor))


class Crop(ProcessingModule):
    name = "crop"

    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        if is_full_frame(params):
            return buffer

        rect = crop_rect(buffer.width, buffer.height, params)
        logger.debug("Crop %dx%d -> %s", buffer.width, buffer.height, rect)
        return buffer.with_data(np.array(buffer.data[rect.to_slice()]))
