# Preview proxy generation
"""
Provides reduced-resolution proxies of pixel buffers.

Auto-enhance statistics are stable under box averaging, so the analyzer can
run on a proxy at interactive latency instead of the full-resolution source.
"""

import numpy as np
import cv2
from typing import Tuple
from dataclasses import dataclass

from darkroom.config import settings
from .image_buf import PixelBuffer
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_PREVIEW_MAX_EDGE = settings.PIPELINE_DEFAULTS["preview_max_edge"]


@dataclass
class ImageProxyInfo:
    """Information about a proxy buffer."""
    original_shape: Tuple[int, int, int]
    proxy_shape: Tuple[int, int, int]
    scale_factor: float
    is_proxy: bool

    @property
    def original_megapixels(self) -> float:
        """Original buffer size in megapixels."""
        return (self.original_shape[0] * self.original_shape[1]) / 1_000_000

    @property
    def proxy_megapixels(self) -> float:
        """Proxy buffer size in megapixels."""
        return (self.proxy_shape[0] * self.proxy_shape[1]) / 1_000_000


def calculate_scale_factor(width: int, height: int, max_edge: int) -> float:
    """
    Scale that brings the longest edge down to ``max_edge``.

    Returns 1.0 when no scaling is needed.
    """
    longest = max(width, height)
    if longest <= max_edge:
        return 1.0
    return max_edge / float(longest)


def create_proxy(
    buffer: PixelBuffer,
    max_edge: int = DEFAULT_PREVIEW_MAX_EDGE,
    interpolation: int = cv2.INTER_AREA,
) -> Tuple[PixelBuffer, ImageProxyInfo]:
    """
    Create a downscaled version of a buffer.

    Args:
        buffer: Linear float32 source buffer.
        max_edge: Longest edge of the proxy in pixels.
        interpolation: OpenCV interpolation method (INTER_AREA box-averages).

    Returns:
        Tuple of (proxy_buffer, proxy_info). The source itself is returned
        when it already fits.
    """
    original_shape = buffer.shape
    scale = calculate_scale_factor(buffer.width, buffer.height, max(1, int(max_edge)))

    if scale >= 1.0:
        info = ImageProxyInfo(
            original_shape=original_shape,
            proxy_shape=original_shape,
            scale_factor=1.0,
            is_proxy=False,
        )
        return buffer, info

    new_width = max(1, int(round(buffer.width * scale)))
    new_height = max(1, int(round(buffer.height * scale)))

    resized = cv2.resize(buffer.data, (new_width, new_height), interpolation=interpolation)
    proxy = PixelBuffer(new_width, new_height, resized)

    info = ImageProxyInfo(
        original_shape=original_shape,
        proxy_shape=proxy.shape,
        scale_factor=scale,
        is_proxy=True,
    )

    logger.debug(
        "Created proxy: %.2f MP -> %.2f MP (scale=%.3f)",
        info.original_megapixels,
        info.proxy_megapixels,
        scale,
    )

    return proxy, info
