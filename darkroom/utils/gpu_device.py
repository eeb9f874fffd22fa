"""
GPU device manager for the compute mirror.

One process-wide device, probed once. Backends are tried in the order
given by ``settings.GPU_DEFAULTS["backend_priority"]``; when none
initializes (or ``use_gpu`` is off) the mirror runs on its host grid.
"""

from typing import Optional, Dict, Any

from darkroom.config import settings
from .logger import get_logger

logger = get_logger(__name__)


class GPUDevice:
    """
    Singleton GPU device supporting CuPy (CUDA/ROCm) and wgpu (Vulkan/Metal/DX12).
    """

    _instance: Optional["GPUDevice"] = None

    def __init__(self) -> None:
        if GPUDevice._instance is not None:
            raise RuntimeError("GPUDevice is a singleton - use GPUDevice.get()")

        self.backend: Optional[str] = None  # "cupy-cuda", "cupy-rocm", "wgpu" or None
        self.device_name: Optional[str] = None

        self._wgpu_adapter: Optional[Any] = None
        self._wgpu_device: Optional[Any] = None
        self._cupy_module: Optional[Any] = None

        self._initialize()

    @classmethod
    def get(cls) -> "GPUDevice":
        """Get the singleton GPU device instance."""
        if cls._instance is None:
            cls._instance = GPUDevice()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next ``get`` probes again."""
        if cls._instance is not None:
            cls._instance._cleanup()
            cls._instance = None

    def _initialize(self) -> None:
        if not settings.GPU_DEFAULTS.get("use_gpu", True):
            logger.info("GPU disabled in settings. Compute mirror uses the host grid.")
            self.device_name = "CPU"
            return

        probes = {"cupy": self._try_cupy, "wgpu": self._try_wgpu}
        for name in settings.GPU_DEFAULTS.get("backend_priority", ("cupy", "wgpu")):
            probe = probes.get(name)
            if probe is not None and probe():
                return

        logger.info("No GPU acceleration available. Compute mirror uses the host grid.")
        self.backend = None
        self.device_name = "CPU"

    def _try_cupy(self) -> bool:
        """Attempt to initialize the CuPy backend."""
        try:
            import cupy as cp

            if cp.cuda.runtime.getDeviceCount() == 0:
                logger.debug("CuPy available but no GPU devices found")
                return False

            props = cp.cuda.runtime.getDeviceProperties(0)
            device_name = props.get("name", b"Unknown GPU")
            if isinstance(device_name, bytes):
                device_name = device_name.decode("utf-8", errors="ignore")

            cupy_path = cp.__file__.lower() if cp.__file__ else ""
            if "rocm" in cupy_path or "hip" in cupy_path:
                self.backend = "cupy-rocm"
                label = "ROCm"
            else:
                self.backend = "cupy-cuda"
                label = "CUDA"

            # Smoke test: a kernel launch must succeed
            _ = cp.sum(cp.arange(3, dtype=cp.float32))

            self._cupy_module = cp
            self.device_name = f"{device_name} ({label})"
            logger.info(f"GPU acceleration enabled: {self.device_name}")
            return True

        except ImportError:
            logger.debug("CuPy not installed")
        except Exception as e:
            logger.debug(f"CuPy initialization failed: {e}")

        self.backend = None
        return False

    def _try_wgpu(self) -> bool:
        """Attempt to initialize the wgpu backend."""
        try:
            import wgpu

            adapter = wgpu.gpu.request_adapter_sync(power_preference="high-performance")
            if adapter is None:
                logger.debug("wgpu: No compatible GPU adapter found")
                return False

            device = adapter.request_device_sync()
            if device is None:
                logger.debug("wgpu: Failed to create device")
                return False

            summary = str(adapter.summary)
            api = "WebGPU"
            if "(" in summary:
                api = summary.split("(")[-1].replace(")", "").strip()

            self._wgpu_adapter = adapter
            self._wgpu_device = device
            self.backend = "wgpu"
            self.device_name = f"{summary.split('(')[0].strip()} ({api})"
            logger.info(f"GPU acceleration enabled: {self.device_name}")
            return True

        except ImportError:
            logger.debug("wgpu not installed")
        except Exception as e:
            logger.debug(f"wgpu initialization failed: {e}")

        return False

    def _cleanup(self) -> None:
        self._wgpu_adapter = None
        self._wgpu_device = None
        self._cupy_module = None

    @property
    def is_available(self) -> bool:
        """True if any GPU backend is available."""
        return self.backend is not None

    @property
    def is_cupy(self) -> bool:
        return self.backend in ("cupy-cuda", "cupy-rocm")

    @property
    def is_wgpu(self) -> bool:
        return self.backend == "wgpu"

    @property
    def wgpu_device(self) -> Optional[Any]:
        """The wgpu device (None unless the wgpu backend is active)."""
        return self._wgpu_device

    @property
    def cupy(self) -> Optional[Any]:
        """The CuPy module (None unless a CuPy backend is active)."""
        return self._cupy_module

    @property
    def mirror_backend(self) -> str:
        """Compute mirror backend name matching this device: "cupy", "wgpu" or "grid"."""
        if self.is_cupy:
            return "cupy"
        if self.is_wgpu:
            return "wgpu"
        return "grid"

    def get_info(self) -> Dict[str, Any]:
        return {
            "enabled": self.is_available,
            "backend": self.backend,
            "device_name": self.device_name,
            "is_cupy": self.is_cupy,
            "is_wgpu": self.is_wgpu,
        }
