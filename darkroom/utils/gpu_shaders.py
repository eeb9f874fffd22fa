"""
WGSL shader loading for the compute mirror.

One shader per mirrored stage, each a 16x16 workgroup kernel with the same
binding layout: read-only input storage texture (0), write-only output
storage texture (1) and a uniform record of stage parameters (2).
"""

import os
from typing import Any, Dict

from .logger import get_logger

logger = get_logger(__name__)

SHADER_DIR = os.path.join(os.path.dirname(__file__), "shaders")

MIRRORED_SHADERS = ("white_balance", "exposure")


class ShaderLoader:
    """
    Compiles WGSL shaders and compute pipelines on first use and caches them.
    """

    _cache: Dict[str, Any] = {}
    _pipelines: Dict[str, Any] = {}

    @classmethod
    def get_shader_path(cls, shader_name: str) -> str:
        return os.path.join(SHADER_DIR, f"{shader_name}.wgsl")

    @classmethod
    def shader_exists(cls, shader_name: str) -> bool:
        return os.path.exists(cls.get_shader_path(shader_name))

    @classmethod
    def read_source(cls, shader_name: str) -> str:
        """WGSL source text of a shader."""
        path = cls.get_shader_path(shader_name)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Shader not found: {path}")
        with open(path, "r") as f:
            return f.read()

    @classmethod
    def load(cls, shader_name: str) -> Any:
        """
        Load and compile a shader by name.

        Args:
            shader_name: Name of the shader file (without .wgsl extension)

        Returns:
            Compiled wgpu shader module
        """
        if shader_name in cls._cache:
            return cls._cache[shader_name]

        code = cls.read_source(shader_name)

        from .gpu_device import GPUDevice
        gpu = GPUDevice.get()
        if not gpu.is_wgpu or not gpu.wgpu_device:
            raise RuntimeError("wgpu device required for shader compilation")

        module = gpu.wgpu_device.create_shader_module(label=shader_name, code=code)
        cls._cache[shader_name] = module
        logger.debug(f"Compiled shader: {shader_name}")
        return module

    @classmethod
    def pipeline(cls, shader_name: str) -> Any:
        """Compute pipeline for ``shader_name`` with an auto-derived layout."""
        if shader_name in cls._pipelines:
            return cls._pipelines[shader_name]

        from .gpu_device import GPUDevice
        device = GPUDevice.get().wgpu_device

        pipeline = device.create_compute_pipeline(
            label=shader_name,
            layout="auto",
            compute={"module": cls.load(shader_name), "entry_point": "main"},
        )
        cls._pipelines[shader_name] = pipeline
        return pipeline

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()
        cls._pipelines.clear()
