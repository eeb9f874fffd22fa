"""
Linear float32 RGB pixel buffer shared by every pipeline stage.
"""

from typing import Sequence, Tuple, Union
import numpy as np

from .errors import InvalidDimensionsError
from .logger import get_logger

logger = get_logger(__name__)


class PixelBuffer:
    """
    Scene-referred linear RGB image.

    ``data`` is a C-contiguous float32 array of shape (height, width, 3), so
    its memory is the flat row-major, channel-interleaved RGBRGB... layout.
    Values may exceed 1.0 and may be transiently negative.
    """

    __slots__ = ("width", "height", "data")

    def __init__(self, width: int, height: int, data: np.ndarray) -> None:
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(
                f"Invalid buffer dimensions {width}x{height}",
                width=width,
                height=height,
            )
        if data.shape != (height, width, 3):
            raise InvalidDimensionsError(
                f"expected data of shape {(height, width, 3)}, got {data.shape}",
                width=width,
                height=height,
            )
        self.width = width
        self.height = height
        self.data = np.ascontiguousarray(data, dtype=np.float32)

    @classmethod
    def from_data(
        cls,
        width: int,
        height: int,
        data: Union[Sequence[float], np.ndarray],
    ) -> "PixelBuffer":
        """
        Build a buffer from a flat RGB sequence.

        Raises:
            InvalidDimensionsError: if a dimension is zero or the sample
                count is not width * height * 3.
        """
        flat = np.asarray(data, dtype=np.float32).ravel()
        expected = int(width) * int(height) * 3
        if width <= 0 or height <= 0 or flat.size != expected:
            raise InvalidDimensionsError(
                f"expected {expected} floats for {width}x{height} RGB, got {flat.size}",
                width=width,
                height=height,
            )
        return cls(width, height, flat.reshape(int(height), int(width), 3))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Wrap an (H, W, 3) array."""
        array = np.asarray(array, dtype=np.float32)
        if array.ndim != 3 or array.shape[2] != 3:
            raise InvalidDimensionsError(f"expected an (H, W, 3) array, got shape {array.shape}")
        return cls(array.shape[1], array.shape[0], array)

    @classmethod
    def filled(cls, width: int, height: int, rgb: Tuple[float, float, float]) -> "PixelBuffer":
        """Uniform buffer where every pixel is ``rgb``."""
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(
                f"Invalid buffer dimensions {width}x{height}", width=width, height=height
            )
        data = np.empty((int(height), int(width), 3), dtype=np.float32)
        data[...] = np.asarray(rgb, dtype=np.float32)
        return cls(width, height, data)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def flat(self) -> np.ndarray:
        """Flat RGBRGB... view of the samples."""
        return self.data.reshape(-1)

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.data.copy())

    def with_data(self, data: np.ndarray) -> "PixelBuffer":
        """New buffer holding ``data`` (dimensions taken from the array)."""
        return PixelBuffer(data.shape[1], data.shape[0], data)

    def downsample(self, max_edge: int) -> "PixelBuffer":
        """Box-averaged copy whose longest edge is at most ``max_edge``."""
        from .image_proxy import create_proxy

        proxy, _ = create_proxy(self, max_edge)
        return proxy

    def to_rgba_f32(self) -> np.ndarray:
        """RGBA float32 (H, W, 4) with alpha = 1.0, for rgba32float upload."""
        rgba = np.ones((self.height, self.width, 4), dtype=np.float32)
        rgba[:, :, :3] = self.data
        return rgba

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.data, other.data)
        )

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"


def ensure_valid(buffer: PixelBuffer, step: str) -> None:
    """
    Fail fast on degenerate input before a stage does any work.

    Raises:
        InvalidDimensionsError: zero-sized buffer or data that does not
            match the declared dimensions.
    """
    if buffer is None:
        raise InvalidDimensionsError("No buffer supplied", step=step)
    if buffer.width <= 0 or buffer.height <= 0 or buffer.data.shape != (buffer.height, buffer.width, 3):
        raise InvalidDimensionsError(
            f"Invalid buffer dimensions {buffer.width}x{buffer.height}",
            width=buffer.width,
            height=buffer.height,
            step=step,
        )
