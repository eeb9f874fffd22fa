# Pipeline orchestrator
"""
Fixed-order chain of the six stages::

    White Balance -> Exposure -> Tone Curve -> Vibrance -> Saturation -> Crop

Order is a correctness invariant, not configuration: callers can neither
skip nor reorder stages. Every run starts from the untouched source buffer;
nothing is memoized between runs apart from the tone-table cache, which is
keyed by parameter values.
"""

from typing import Optional, Tuple

import numpy as np

from darkroom.config import settings
from ..utils.errors import GPUError
from ..utils.image_buf import PixelBuffer, ensure_valid
from ..utils.logger import get_logger
from .crop import Crop
from .display import encode_display
from .exposure import Exposure
from .module import ProcessingModule
from .params import EditParams
from .saturation import Saturation
from .tone_curve import ToneCurve
from .vibrance import Vibrance
from .white_balance import WhiteBalance

logger = get_logger(__name__)

# Leading stages the compute mirror can take over
MIRRORED_STAGES = ("white_balance", "exposure")


class Pipeline:
    """
    Runs an ``EditParams`` over a source buffer.

    Args:
        use_gpu: Route white balance and exposure through the compute
            mirror when a GPU device is available. Results match the CPU
            stages; without a device the CPU stages run.
    """

    def __init__(self, use_gpu: bool = False) -> None:
        self._stages: Tuple[ProcessingModule, ...] = (
            WhiteBalance(),
            Exposure(),
            ToneCurve(),
            Vibrance(),
            Saturation(),
            Crop(),
        )
        self._mirror = None
        if use_gpu and settings.GPU_DEFAULTS.get("use_gpu", True):
            self._mirror = self._create_mirror()

    @staticmethod
    def _create_mirror():
        from ..utils.gpu_engine import ComputeMirror
        from ..utils.gpu_device import GPUDevice

        if not GPUDevice.get().is_available:
            logger.info("No GPU device; pipeline runs every stage on the CPU")
            return None
        try:
            return ComputeMirror()
        except GPUError as e:
            logger.warning("Compute mirror unavailable: %s", e)
            return None

    @property
    def stages(self) -> Tuple[ProcessingModule, ...]:
        return self._stages

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    @property
    def uses_gpu(self) -> bool:
        return self._mirror is not None

    def run(self, source: PixelBuffer, params: Optional[EditParams] = None) -> PixelBuffer:
        """
        Apply every stage in order and return the result.

        ``source`` is never modified; with identity parameters the source
        object itself is returned.

        Raises:
            InvalidDimensionsError: zero-sized or malformed ``source``.
        """
        if params is None:
            params = EditParams()
        ensure_valid(source, "pipeline")

        current = source
        stages = self._stages
        if self._mirror is not None:
            current = self._mirror.process(current, params)
            stages = tuple(s for s in stages if s.name not in MIRRORED_STAGES)

        for stage in stages:
            logger.debug("processing %s", stage.name)
            current = stage.apply(current, params)
        return current

    def render(self, source: PixelBuffer, params: Optional[EditParams] = None) -> np.ndarray:
        """``run`` followed by display encoding: uint8 (H, W, 3)."""
        return encode_display(self.run(source, params))


_default_pipeline: Optional[Pipeline] = None


def run_pipeline(source: PixelBuffer, params: Optional[EditParams] = None) -> PixelBuffer:
    """Run the shared CPU pipeline."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = Pipeline()
    return _default_pipeline.run(source, params)
