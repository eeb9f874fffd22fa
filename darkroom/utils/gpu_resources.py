"""
wgpu resource wrappers used by the compute mirror.

Pixels live in rgba32float storage textures between mirrored stages, so a
white balance + exposure run needs one upload and one readback.
"""

from typing import Any, Dict, Tuple
import numpy as np

from .logger import get_logger

logger = get_logger(__name__)

# Bytes per rgba32float texel
TEXEL_BYTES = 16
# wgpu requires texture->buffer copies to use 256-byte aligned rows
ROW_ALIGNMENT = 256


def aligned_bytes_per_row(width: int) -> int:
    return (width * TEXEL_BYTES + ROW_ALIGNMENT - 1) & ~(ROW_ALIGNMENT - 1)


def _device() -> Any:
    from .gpu_device import GPUDevice

    gpu = GPUDevice.get()
    if not gpu.is_wgpu or not gpu.wgpu_device:
        raise RuntimeError("wgpu device required")
    return gpu.wgpu_device


class GPUTexture:
    """
    rgba32float storage texture holding one image.
    """

    def __init__(self, width: int, height: int, usage: int = 0, label: str = "") -> None:
        import wgpu

        device = _device()
        self.width = width
        self.height = height
        self.format = "rgba32float"
        self.label = label

        if usage == 0:
            usage = (
                wgpu.TextureUsage.STORAGE_BINDING
                | wgpu.TextureUsage.COPY_DST
                | wgpu.TextureUsage.COPY_SRC
            )

        self._texture = device.create_texture(
            label=label,
            size=(width, height, 1),
            format=self.format,
            usage=usage,
        )
        self._view = self._texture.create_view()

    @property
    def texture(self) -> Any:
        return self._texture

    @property
    def view(self) -> Any:
        return self._view

    def upload(self, data: np.ndarray) -> None:
        """
        Upload an (H, W, 3) or (H, W, 4) float array.

        RGB input gets an opaque alpha channel.
        """
        if data.shape[:2] != (self.height, self.width):
            raise ValueError(
                f"upload of {data.shape[1]}x{data.shape[0]} into {self.width}x{self.height} texture"
            )
        if data.shape[2] == 3:
            rgba = np.ones((self.height, self.width, 4), dtype=np.float32)
            rgba[:, :, :3] = data
            data = rgba
        data = np.ascontiguousarray(data, dtype=np.float32)

        _device().queue.write_texture(
            {"texture": self._texture},
            data,
            {"bytes_per_row": self.width * TEXEL_BYTES, "rows_per_image": self.height},
            (self.width, self.height, 1),
        )

    def readback(self) -> np.ndarray:
        """
        Copy the texture back to the host.

        Blocks until the device has finished all submitted work.

        Returns:
            float32 array of shape (H, W, 4)
        """
        import wgpu

        device = _device()
        bytes_per_row = aligned_bytes_per_row(self.width)

        staging = device.create_buffer(
            size=bytes_per_row * self.height,
            usage=wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ,
        )

        encoder = device.create_command_encoder()
        encoder.copy_texture_to_buffer(
            {"texture": self._texture},
            {"buffer": staging, "bytes_per_row": bytes_per_row, "rows_per_image": self.height},
            (self.width, self.height, 1),
        )
        device.queue.submit([encoder.finish()])

        staging.map_sync(mode=wgpu.MapMode.READ)
        raw = staging.read_mapped()

        # Strip the row padding
        rows = np.frombuffer(raw, dtype=np.float32).reshape((self.height, bytes_per_row // 4))
        pixels = rows[:, :self.width * 4].reshape((self.height, self.width, 4)).copy()

        staging.unmap()
        staging.destroy()
        return pixels

    def destroy(self) -> None:
        self._view = None
        if self._texture is not None:
            self._texture.destroy()
            self._texture = None


class TexturePool:
    """
    Reusable textures keyed by (width, height, usage, label).

    The label keeps the input, intermediate and output of one run apart.
    """

    def __init__(self) -> None:
        self._pool: Dict[Tuple[int, int, int, str], GPUTexture] = {}

    def get(self, width: int, height: int, usage: int = 0, label: str = "") -> GPUTexture:
        key = (width, height, usage, label)
        if key not in self._pool:
            self._pool[key] = GPUTexture(width, height, usage, label)
            logger.debug(f"Created pooled texture: {width}x{height} ({label})")
        return self._pool[key]

    def clear(self) -> None:
        for tex in self._pool.values():
            tex.destroy()
        self._pool.clear()

    def __len__(self) -> int:
        return len(self._pool)


def create_uniform_buffer(data: bytes, label: str = "") -> Any:
    """Uniform buffer initialised with ``data``."""
    import wgpu

    device = _device()
    buffer = device.create_buffer(
        label=label,
        size=len(data),
        usage=wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST,
    )
    device.queue.write_buffer(buffer, 0, data)
    return buffer
