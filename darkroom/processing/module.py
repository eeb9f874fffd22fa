# Pipeline stage contract
"""
Base class shared by the six pipeline stages.
"""

from abc import ABC, abstractmethod

from ..utils.image_buf import PixelBuffer, ensure_valid
from .params import EditParams


class ProcessingModule(ABC):
    """
    One step of the pipeline: ``apply(buffer, params) -> buffer``.

    ``apply`` rejects zero-sized buffers with ``InvalidDimensionsError``
    before any work happens. Subclasses implement ``process``, returning the
    input object itself on their identity fast path and a new buffer
    otherwise. Inputs are never mutated.
    """

    name: str = ""

    def apply(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        ensure_valid(buffer, self.name)
        return self.process(buffer, params)

    @abstractmethod
    def process(self, buffer: PixelBuffer, params: EditParams) -> PixelBuffer:
        """Stage body; ``buffer`` is already validated."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
