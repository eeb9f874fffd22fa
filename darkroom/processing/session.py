# Edit session
"""
Caller-side supersession for interactive editing.

The pipeline is a pure function; responsiveness under rapid slider changes
is the caller's problem. ``EditSession`` tags every submitted parameter set
with a monotonically increasing sequence number so that a result whose
number is no longer the latest can be discarded instead of displayed.
"""

import threading
from typing import Optional

import numpy as np

from ..utils.errors import AppError, ErrorCategory
from ..utils.image_buf import PixelBuffer, ensure_valid
from ..utils.logger import get_logger
from .params import EditParams
from .pipeline import Pipeline

logger = get_logger(__name__)


class EditSession:
    """
    Holds an immutable source buffer and the latest submitted parameters.

    Rendered pixels are never cached: every ``render`` is a full pipeline
    run from the source.
    """

    def __init__(self, source: PixelBuffer, pipeline: Optional[Pipeline] = None) -> None:
        ensure_valid(source, "session")
        self._source = source
        self._pipeline = pipeline if pipeline is not None else Pipeline()
        self._lock = threading.Lock()
        self._sequence = 0
        self._params = {0: EditParams()}

    @property
    def source(self) -> PixelBuffer:
        return self._source

    @property
    def latest_sequence(self) -> int:
        with self._lock:
            return self._sequence

    @property
    def params(self) -> EditParams:
        """Parameters of the most recent submission."""
        with self._lock:
            return self._params[self._sequence]

    def submit(self, params: EditParams) -> int:
        """Record ``params`` as the current edit; returns its sequence number."""
        with self._lock:
            self._sequence += 1
            # Only the latest parameter set can still be rendered usefully
            self._params = {self._sequence: params}
            return self._sequence

    def is_current(self, sequence: int) -> bool:
        with self._lock:
            return sequence == self._sequence

    def render(self, sequence: Optional[int] = None) -> Optional[np.ndarray]:
        """
        Display-encoded pixels for ``sequence`` (default: latest).

        Returns None when the submission was superseded before or during
        the run.
        """
        with self._lock:
            if sequence is None:
                sequence = self._sequence
            if sequence > self._sequence or sequence < 0:
                raise AppError(
                    f"Unknown sequence number {sequence}",
                    category=ErrorCategory.USER_INPUT,
                )
            params = self._params.get(sequence)

        if params is None:
            logger.debug("Skipping superseded render %d", sequence)
            return None

        pixels = self._pipeline.render(self._source, params)
        if not self.is_current(sequence):
            logger.debug("Discarding superseded render %d", sequence)
            return None
        return pixels
