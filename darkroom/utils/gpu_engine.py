"""
Compute mirror - white balance and exposure as grid-dispatched kernels.

Every backend runs the same kernels over a ceil(w/16) x ceil(h/16) grid of
16x16 workgroups. Each invocation handles one pixel and does nothing when
its coordinate falls outside the image, so every output pixel is written
exactly once and no synchronization between workgroups is needed.

Backends:
    "wgpu"  WGSL compute shaders on rgba32float storage textures
    "cupy"  CUDA/ROCm RawKernels launched with 16x16 thread blocks
    "grid"  host reference that walks the same tile grid with NumPy

The stage parameters are never derived here: the white balance matrix and
exposure multiplier come from the CPU stages (``wb_matrix``,
``exposure_multiplier``), so every backend applies identical numbers.
Device failures degrade to the CPU stages through ``handle_gpu_errors``.
"""

import struct
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import numpy as np

from darkroom.config import settings
from .errors import ConfigurationError, GPUError, handle_gpu_errors
from .image_buf import PixelBuffer, ensure_valid
from .logger import get_logger

logger = get_logger(__name__)

WORKGROUP_SIZE = settings.GPU_DEFAULTS["workgroup_size"]
BACKENDS = ("wgpu", "cupy", "grid")

# Kernels for the CuPy backend; same per-pixel math as the WGSL shaders
CUDA_SOURCE = r"""
extern "C" __global__
void white_balance(const float* src, float* dst, const float* m, int width, int height) {
    int x = blockDim.x * blockIdx.x + threadIdx.x;
    int y = blockDim.y * blockIdx.y + threadIdx.y;
    if (x >= width || y >= height) {
        return;
    }
    int i = (y * width + x) * 3;
    float r = src[i];
    float g = src[i + 1];
    float b = src[i + 2];
    dst[i]     = fmaxf(m[0] * r + m[1] * g + m[2] * b, 0.0f);
    dst[i + 1] = fmaxf(m[3] * r + m[4] * g + m[5] * b, 0.0f);
    dst[i + 2] = fmaxf(m[6] * r + m[7] * g + m[8] * b, 0.0f);
}

extern "C" __global__
void exposure(const float* src, float* dst, float multiplier, int width, int height) {
    int x = blockDim.x * blockIdx.x + threadIdx.x;
    int y = blockDim.y * blockIdx.y + threadIdx.y;
    if (x >= width || y >= height) {
        return;
    }
    int i = (y * width + x) * 3;
    dst[i]     = src[i] * multiplier;
    dst[i + 1] = src[i + 1] * multiplier;
    dst[i + 2] = src[i + 2] * multiplier;
}
"""


def dispatch_grid(width: int, height: int, workgroup: int = WORKGROUP_SIZE) -> Tuple[int, int]:
    """Workgroup counts (x, y) covering a ``width`` x ``height`` image."""
    return (
        (width + workgroup - 1) // workgroup,
        (height + workgroup - 1) // workgroup,
    )


def iter_tiles(width: int, height: int, workgroup: int = WORKGROUP_SIZE) -> Iterator[Tuple[slice, slice]]:
    """
    (y_slice, x_slice) of every workgroup in dispatch order.

    Edge tiles are cut at the image bounds, which is the per-invocation
    bounds check of the device kernels.
    """
    groups_x, groups_y = dispatch_grid(width, height, workgroup)
    for gy in range(groups_y):
        y0 = gy * workgroup
        for gx in range(groups_x):
            x0 = gx * workgroup
            yield (
                slice(y0, min(y0 + workgroup, height)),
                slice(x0, min(x0 + workgroup, width)),
            )


def pack_wb_uniform(matrix: np.ndarray) -> bytes:
    """3x3 matrix as three vec4 rows (48 bytes)."""
    data = b""
    for row in matrix:
        data += struct.pack("ffff", float(row[0]), float(row[1]), float(row[2]), 0.0)
    return data


def pack_exposure_uniform(multiplier: float) -> bytes:
    """Multiplier in the x lane of one vec4 (16 bytes)."""
    return struct.pack("ffff", float(multiplier), 0.0, 0.0, 0.0)


class ComputeMirror:
    """
    White balance and exposure on a parallel backend.

    Args:
        backend: "wgpu", "cupy" or "grid". ``None`` picks the backend of the
            active ``GPUDevice`` and falls back to "grid" without one.

    Raises:
        ConfigurationError: unknown backend name.
        GPUError: a device backend was requested but is not available.
    """

    def __init__(self, backend: Optional[str] = None, workgroup: int = WORKGROUP_SIZE) -> None:
        from .gpu_device import GPUDevice

        self.gpu = GPUDevice.get()
        if backend is None:
            backend = self.gpu.mirror_backend
        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown compute backend: {backend}", setting_name="backend")
        if backend == "cupy" and not self.gpu.is_cupy:
            raise GPUError("CuPy backend requested but no CuPy device is available")
        if backend == "wgpu" and not self.gpu.is_wgpu:
            raise GPUError("wgpu backend requested but no wgpu device is available")

        self.backend = backend
        self.workgroup = int(workgroup)

        self._cupy_module: Optional[Any] = None
        self._texture_pool: Optional[Any] = None
        logger.debug("Compute mirror using %s backend", backend)

    @property
    def is_device(self) -> bool:
        """True when kernels run on a GPU rather than the host grid."""
        return self.backend != "grid"

    # =========================================================================
    # Public API
    # =========================================================================

    def apply_white_balance(self, buffer: PixelBuffer, params) -> PixelBuffer:
        from ..processing.white_balance import WhiteBalance

        ensure_valid(buffer, "white_balance")
        return self._run(buffer, params, ("white_balance",), WhiteBalance().apply)

    def apply_exposure(self, buffer: PixelBuffer, params) -> PixelBuffer:
        from ..processing.exposure import Exposure

        ensure_valid(buffer, "exposure")
        return self._run(buffer, params, ("exposure",), Exposure().apply)

    def process(self, buffer: PixelBuffer, params) -> PixelBuffer:
        """White balance then exposure, reading back once at the end."""
        ensure_valid(buffer, "compute_mirror")
        return self._run(buffer, params, ("white_balance", "exposure"), self._cpu_process)

    # =========================================================================
    # Dispatch
    # =========================================================================

    @staticmethod
    def _cpu_process(buffer: PixelBuffer, params) -> PixelBuffer:
        from ..processing.exposure import Exposure
        from ..processing.white_balance import WhiteBalance

        return Exposure().apply(WhiteBalance().apply(buffer, params), params)

    def _stage_plan(self, params, stages: Tuple[str, ...]) -> List[Tuple[str, Any]]:
        """(stage, derived parameter) pairs, skipping stages at identity."""
        from ..processing.exposure import exposure_multiplier
        from ..processing.white_balance import is_identity_matrix, wb_matrix

        plan = []
        for stage in stages:
            if stage == "white_balance":
                matrix = wb_matrix(params.wb_temp, params.wb_tint)
                if not is_identity_matrix(matrix):
                    plan.append((stage, matrix))
            elif stage == "exposure":
                if params.exposure != 0.0:
                    plan.append((stage, exposure_multiplier(params.exposure)))
        return plan

    def _run(
        self,
        buffer: PixelBuffer,
        params,
        stages: Tuple[str, ...],
        cpu_fallback: Callable[[PixelBuffer, Any], PixelBuffer],
    ) -> PixelBuffer:
        plan = self._stage_plan(params, stages)
        if not plan:
            return buffer

        if self.backend == "grid":
            return buffer.with_data(self._run_grid(buffer.data, plan))

        device_run = self._run_cupy if self.backend == "cupy" else self._run_wgpu

        def run_on_device(buf: PixelBuffer, _params) -> PixelBuffer:
            return buf.with_data(device_run(buf.data, plan))

        run_on_device.__name__ = f"{self.backend}_{'_'.join(s for s, _ in plan)}"
        return handle_gpu_errors(fallback_func=cpu_fallback)(run_on_device)(buffer, params)

    # =========================================================================
    # Host grid
    # =========================================================================

    def _run_grid(self, data: np.ndarray, plan: List[Tuple[str, Any]]) -> np.ndarray:
        from ..processing.white_balance import apply_matrix

        height, width = data.shape[:2]
        src = data
        for stage, value in plan:
            dst = np.empty_like(src)
            for tile in iter_tiles(width, height, self.workgroup):
                if stage == "white_balance":
                    dst[tile] = apply_matrix(src[tile], value)
                else:
                    dst[tile] = src[tile] * value
            src = dst
        return src

    # =========================================================================
    # CuPy
    # =========================================================================

    def _cupy_kernels(self) -> Dict[str, Any]:
        if self._cupy_module is None:
            cp = self.gpu.cupy
            self._cupy_module = cp.RawModule(code=CUDA_SOURCE)
        return {
            "white_balance": self._cupy_module.get_function("white_balance"),
            "exposure": self._cupy_module.get_function("exposure"),
        }

    def _run_cupy(self, data: np.ndarray, plan: List[Tuple[str, Any]]) -> np.ndarray:
        cp = self.gpu.cupy
        kernels = self._cupy_kernels()
        height, width = data.shape[:2]
        grid = dispatch_grid(width, height, self.workgroup)
        block = (self.workgroup, self.workgroup)
        w = np.int32(width)
        h = np.int32(height)

        src = cp.asarray(data, dtype=cp.float32)
        for stage, value in plan:
            dst = cp.empty_like(src)
            if stage == "white_balance":
                matrix = cp.asarray(np.ascontiguousarray(value, dtype=np.float32).ravel())
                kernels[stage](grid, block, (src, dst, matrix, w, h))
            else:
                kernels[stage](grid, block, (src, dst, np.float32(value), w, h))
            src = dst

        # asnumpy waits for the stream to drain
        return cp.asnumpy(src)

    # =========================================================================
    # wgpu
    # =========================================================================

    def _run_wgpu(self, data: np.ndarray, plan: List[Tuple[str, Any]]) -> np.ndarray:
        from .gpu_resources import TexturePool, create_uniform_buffer
        from .gpu_shaders import ShaderLoader

        if self._texture_pool is None:
            self._texture_pool = TexturePool()

        device = self.gpu.wgpu_device
        height, width = data.shape[:2]
        groups_x, groups_y = dispatch_grid(width, height, self.workgroup)

        current = self._texture_pool.get(width, height, 0, "input")
        current.upload(data)

        encoder = device.create_command_encoder()
        for i, (stage, value) in enumerate(plan):
            if stage == "white_balance":
                uniform = create_uniform_buffer(pack_wb_uniform(value), "wb_params")
            else:
                uniform = create_uniform_buffer(pack_exposure_uniform(value), "exposure_params")

            target = self._texture_pool.get(width, height, 0, f"stage{i}")
            pipeline = ShaderLoader.pipeline(stage)
            bind_group = device.create_bind_group(
                layout=pipeline.get_bind_group_layout(0),
                entries=[
                    {"binding": 0, "resource": current.view},
                    {"binding": 1, "resource": target.view},
                    {"binding": 2, "resource": {"buffer": uniform, "offset": 0, "size": uniform.size}},
                ],
            )

            # Passes execute in order; the next one reads what this one wrote
            compute_pass = encoder.begin_compute_pass()
            compute_pass.set_pipeline(pipeline)
            compute_pass.set_bind_group(0, bind_group)
            compute_pass.dispatch_workgroups(groups_x, groups_y, 1)
            compute_pass.end()
            current = target

        device.queue.submit([encoder.finish()])
        return current.readback()[:, :, :3]

    # =========================================================================
    # Resource Management
    # =========================================================================

    def cleanup(self) -> None:
        """Release pooled textures (keeps compiled kernels)."""
        if self._texture_pool is not None:
            self._texture_pool.clear()
