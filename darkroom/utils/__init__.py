# This file makes the 'utils' directory a Python package.

from .errors import (
    AppError,
    ProcessingError,
    InvalidDimensionsError,
    GPUError,
    ConfigurationError,
    ErrorCategory,
    handle_gpu_errors,
)
from .image_buf import PixelBuffer, ensure_valid
from .image_proxy import ImageProxyInfo, create_proxy
from .gpu_device import GPUDevice
from .gpu_engine import ComputeMirror, dispatch_grid, iter_tiles

__all__ = [
    # Errors
    'AppError',
    'ProcessingError',
    'InvalidDimensionsError',
    'GPUError',
    'ConfigurationError',
    'ErrorCategory',
    'handle_gpu_errors',
    # Buffers
    'PixelBuffer',
    'ensure_valid',
    'ImageProxyInfo',
    'create_proxy',
    # Compute mirror
    'GPUDevice',
    'ComputeMirror',
    'dispatch_grid',
    'iter_tiles',
]
