# Centralized error handling utilities
"""
Provides consistent error handling patterns across the pipeline.

This module defines:
- Custom exception classes for different error categories
- A decorator routing failed GPU work to its CPU counterpart
"""

import functools
from typing import Any, Callable, Optional, TypeVar
from enum import Enum

from .logger import get_logger

logger = get_logger(__name__)

# Type variable for generic function signatures
F = TypeVar('F', bound=Callable[..., Any])


class ErrorCategory(Enum):
    """Categories of errors for consistent handling."""
    RECOVERABLE = "recoverable"      # Can continue with fallback
    USER_INPUT = "user_input"        # Invalid caller input
    PROCESSING = "processing"        # Image processing errors
    GPU = "gpu"                      # GPU-related errors
    CONFIGURATION = "configuration"  # Settings/parameter errors
    FATAL = "fatal"                  # Unrecoverable errors


class AppError(Exception):
    """Base exception for pipeline-specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.RECOVERABLE,
        original_error: Optional[Exception] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.category = category
        self.original_error = original_error
        self.user_message = user_message or message

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.args[0]} (caused by: {type(self.original_error).__name__})"
        return self.args[0]


class ProcessingError(AppError):
    """Image processing errors."""

    def __init__(self, message: str, step: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.PROCESSING, **kwargs)
        self.step = step


class InvalidDimensionsError(ProcessingError):
    """Buffer with zero width/height or a data length that does not match its shape."""

    def __init__(
        self,
        message: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.width = width
        self.height = height


class GPUError(AppError):
    """GPU-related errors."""

    def __init__(self, message: str, fallback_available: bool = True, **kwargs):
        super().__init__(message, category=ErrorCategory.GPU, **kwargs)
        self.fallback_available = fallback_available


class ConfigurationError(AppError):
    """Configuration/parameter errors."""

    def __init__(self, message: str, setting_name: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.setting_name = setting_name


def handle_gpu_errors(fallback_func: Optional[Callable] = None) -> Callable[[F], F]:
    """
    Decorator specifically for GPU operations with CPU fallback.

    Args:
        fallback_func: CPU function called with the same arguments on GPU error.

    Processing errors (e.g. invalid dimensions) are not GPU failures and
    propagate unchanged.

    Example:
        @handle_gpu_errors(fallback_func=cpu_process)
        def gpu_process(buffer, params):
            # ... GPU processing code ...
            return result
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ProcessingError:
                raise
            except Exception as e:
                if fallback_func is None:
                    raise GPUError(
                        f"GPU operation {func.__name__} failed",
                        fallback_available=False,
                        original_error=e,
                    ) from e

                logger.warning(
                    "GPU operation %s failed: %s. Falling back to CPU.",
                    func.__name__,
                    str(e),
                )
                return fallback_func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator
