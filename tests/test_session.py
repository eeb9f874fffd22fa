"""Tests for EditSession supersession."""

import threading

import numpy as np
import pytest

from darkroom.processing.params import EditParams
from darkroom.processing.pipeline import Pipeline
from darkroom.processing.session import EditSession
from darkroom.utils.errors import AppError, ErrorCategory, InvalidDimensionsError
from darkroom.utils.image_buf import PixelBuffer


class InterruptingPipeline(Pipeline):
    """Submits a newer edit while a render is in flight."""

    def __init__(self):
        super().__init__()
        self.session = None

    def render(self, source, params=None):
        pixels = super().render(source, params)
        self.session.submit(params.replace(exposure=params.exposure + 1.0))
        return pixels


class TestEditSession:
    def test_initial_state(self, mid_gray):
        session = EditSession(mid_gray)
        assert session.latest_sequence == 0
        assert session.params == EditParams()
        assert session.source is mid_gray
        assert np.all(session.render() == 118)

    def test_sequence_increases(self, mid_gray):
        session = EditSession(mid_gray)
        assert session.submit(EditParams(exposure=0.5)) == 1
        assert session.submit(EditParams(exposure=1.0)) == 2
        assert session.latest_sequence == 2
        assert session.params.exposure == 1.0
        assert session.is_current(2)
        assert not session.is_current(1)

    def test_render_latest(self, mid_gray):
        session = EditSession(mid_gray)
        seq = session.submit(EditParams(exposure=1.0))
        out = session.render(seq)
        expected = Pipeline().render(mid_gray, EditParams(exposure=1.0))
        np.testing.assert_array_equal(out, expected)

    def test_superseded_render_is_discarded(self, mid_gray):
        session = EditSession(mid_gray)
        first = session.submit(EditParams(exposure=0.5))
        session.submit(EditParams(exposure=-0.5))
        assert session.render(first) is None

    def test_superseded_during_run(self, mid_gray):
        pipeline = InterruptingPipeline()
        session = EditSession(mid_gray, pipeline=pipeline)
        pipeline.session = session
        seq = session.submit(EditParams(exposure=0.25))
        assert session.render(seq) is None
        assert session.latest_sequence == seq + 1

    @pytest.mark.parametrize("sequence", [5, -1])
    def test_unknown_sequence(self, mid_gray, sequence):
        session = EditSession(mid_gray)
        session.submit(EditParams())
        with pytest.raises(AppError) as excinfo:
            session.render(sequence)
        assert excinfo.value.category == ErrorCategory.USER_INPUT

    def test_source_never_mutated(self, random_buffer):
        before = random_buffer.data.copy()
        session = EditSession(random_buffer)
        for ev in (0.5, 1.0, -2.0):
            session.render(session.submit(EditParams(exposure=ev, vibrance=30.0)))
        np.testing.assert_array_equal(random_buffer.data, before)

    def test_invalid_source(self):
        buf = PixelBuffer.filled(2, 2, (0.1, 0.1, 0.1))
        buf.height = 0
        with pytest.raises(InvalidDimensionsError):
            EditSession(buf)

    def test_concurrent_submits(self, mid_gray):
        session = EditSession(mid_gray)
        seen = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                seq = session.submit(EditParams(contrast=10.0))
                with lock:
                    seen.append(seq)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(seen) == list(range(1, 201))
        assert session.latest_sequence == 200
