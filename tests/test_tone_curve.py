"""
Tests for the tone curve: table construction, application and caching.
"""

import itertools
import threading

import numpy as np
import pytest

from darkroom.processing.params import EditParams
from darkroom.processing.tone_curve import (
    ToneCurve,
    ToneLUTCache,
    apply_tone_lut,
    build_tone_lut,
    lut_lerp,
    s_curve,
)
from darkroom.utils.color import luminance, perceptual_to_linear
from darkroom.utils.errors import ConfigurationError
from darkroom.utils.image_buf import PixelBuffer

SLIDER_GRID = [-100.0, -35.0, 0.0, 60.0, 100.0]


def lut_at(lut, linear):
    """Table value at a linear input (nearest entry)."""
    return float(lut[int(round(linear * (lut.shape[0] - 1)))])


class TestBuildToneLut:
    """Tests for build_tone_lut."""

    def test_identity(self):
        lut = build_tone_lut()
        expected = np.arange(lut.shape[0]) / (lut.shape[0] - 1)
        np.testing.assert_allclose(lut, expected, atol=1e-6)

    def test_default_size_and_dtype(self):
        lut = build_tone_lut(contrast=10.0)
        assert lut.shape == (4096,)
        assert lut.dtype == np.float32

    def test_size_too_small(self):
        with pytest.raises(ConfigurationError):
            build_tone_lut(size=1)

    def test_custom_size(self):
        assert build_tone_lut(shadows=20.0, size=256).shape == (256,)

    def test_monotonic_over_slider_grid(self):
        """Every slider combination yields a non-decreasing, bounded, gap-free table."""
        for c, h, s, b in itertools.product(SLIDER_GRID, repeat=4):
            lut = build_tone_lut(c, h, s, b)
            assert np.all(np.isfinite(lut))
            assert np.all(np.diff(lut) >= 0.0), (c, h, s, b)
            assert lut[0] >= 0.0 and lut[-1] <= 1.0 + 1e-6
            assert np.max(np.diff(lut)) < 0.06, (c, h, s, b)

    def test_positive_contrast_is_s_shaped(self):
        lut = build_tone_lut(contrast=60.0)
        assert lut_at(lut, 0.05) < 0.05
        assert lut_at(lut, 0.7) > 0.7
        # Perceptual mid-gray is a fixed point
        mid = perceptual_to_linear(0.5)
        assert lut_at(lut, mid) == pytest.approx(mid, abs=2e-3)

    def test_negative_contrast_flattens(self):
        lut = build_tone_lut(contrast=-60.0)
        assert lut_at(lut, 0.05) > 0.05
        assert lut_at(lut, 0.7) < 0.7

    def test_shadows_lift_only_shadow_zone(self):
        lut = build_tone_lut(shadows=80.0)
        assert lut_at(lut, 0.05) > 0.05
        # Highlights untouched
        assert lut_at(lut, 0.8) == pytest.approx(0.8, abs=1e-5)

    def test_highlights_recover(self):
        lut = build_tone_lut(highlights=-80.0)
        assert lut_at(lut, 0.6) < 0.6
        assert lut_at(lut, 0.02) == pytest.approx(0.02, abs=1e-5)
        assert lut[-1] == pytest.approx(1.0, abs=1e-6)

    def test_highlights_boost(self):
        lut = build_tone_lut(highlights=80.0)
        assert lut_at(lut, 0.6) > 0.6

    def test_blacks_lift_raises_floor(self):
        lut = build_tone_lut(blacks=100.0)
        assert lut[0] > 0.005

    def test_blacks_crush(self):
        lut = build_tone_lut(blacks=-100.0)
        assert lut[0] == 0.0
        assert lut_at(lut, 0.005) < 0.005


class TestSCurve:
    def test_fixed_points(self):
        for a in (0.3, 1.0, 3.0):
            np.testing.assert_allclose(s_curve(np.array([0.0, 0.5, 1.0]), a), [0.0, 0.5, 1.0], atol=1e-9)

    def test_a_one_is_identity(self):
        x = np.linspace(0.0, 1.0, 101)
        np.testing.assert_allclose(s_curve(x, 1.0), x, atol=1e-9)


class TestApplyToneLut:
    """Tests for per-pixel application."""

    def test_lut_lerp_interpolates(self):
        lut = np.array([0.0, 0.5, 1.0], dtype=np.float32)
        np.testing.assert_allclose(lut_lerp(lut, np.array([0.0, 0.25, 0.5, 1.0])), [0.0, 0.25, 0.5, 1.0])

    def test_hue_preserved(self):
        data = np.array([[[0.3, 0.2, 0.1], [0.05, 0.1, 0.4]]], dtype=np.float32)
        out = apply_tone_lut(data, build_tone_lut(contrast=50.0, shadows=30.0))
        for before, after in zip(data[0], out[0]):
            np.testing.assert_allclose(after / after[1], before / before[1], rtol=1e-5)

    def test_luminance_follows_table(self):
        lut = build_tone_lut(contrast=40.0)
        data = np.full((1, 1, 3), 0.3, dtype=np.float32)
        out = apply_tone_lut(data, lut)
        assert float(luminance(out)[0, 0]) == pytest.approx(float(lut_lerp(lut, np.float32(0.3))), rel=1e-5)

    def test_dark_pixels_unchanged(self):
        data = np.array([[[0.0, 0.0, 0.0], [1e-8, 0.0, 2e-8]]], dtype=np.float32)
        out = apply_tone_lut(data, build_tone_lut(blacks=100.0))
        np.testing.assert_array_equal(out, data)

    def test_dark_pixels_keep_negative_channels(self):
        """Scene-referred negatives in a near-black pixel pass through untouched."""
        data = np.array([[[-0.1, 0.0, 0.05], [0.4, 0.3, 0.2]]], dtype=np.float32)
        out = apply_tone_lut(data, build_tone_lut(contrast=30.0))
        np.testing.assert_array_equal(out[0, 0], data[0, 0])
        assert np.all(out[0, 1] >= 0.0)

    def test_hdr_extrapolated(self):
        identity = build_tone_lut()
        data = np.array([[[2.0, 2.0, 2.0], [4.0, 3.0, 5.0]]], dtype=np.float32)
        np.testing.assert_allclose(apply_tone_lut(data, identity), data, rtol=1e-3)

    def test_hdr_monotonic_past_one(self):
        lut = build_tone_lut(contrast=70.0, highlights=-40.0)
        grays = np.array([0.9, 1.0, 1.5, 3.0, 10.0], dtype=np.float32)
        data = np.repeat(grays[np.newaxis, :, np.newaxis], 3, axis=2)
        out = apply_tone_lut(data, lut)[0, :, 0]
        assert np.all(np.isfinite(out))
        assert np.all(np.diff(out) >= -1e-6)


class TestToneLUTCache:
    """Tests for the bounded table cache."""

    def test_hit_and_miss(self):
        cache = ToneLUTCache()
        params = EditParams(contrast=25.0)
        first = cache.get(params)
        second = cache.get(params)
        assert first is second
        assert cache.stats() == {"entries": 1, "hits": 1, "misses": 1}
        assert params in cache

    def test_other_fields_share_table(self):
        cache = ToneLUTCache()
        cache.get(EditParams(contrast=25.0))
        cache.get(EditParams(contrast=25.0, exposure=1.0, vibrance=40.0))
        assert cache.misses == 1

    def test_cached_table_read_only(self):
        lut = ToneLUTCache().get(EditParams(shadows=10.0))
        with pytest.raises(ValueError):
            lut[0] = 1.0

    def test_eviction(self):
        cache = ToneLUTCache(max_entries=2)
        a, b, c = (EditParams(contrast=v) for v in (10.0, 20.0, 30.0))
        cache.get(a)
        cache.get(b)
        cache.get(a)  # a is now most recent
        cache.get(c)
        assert len(cache) == 2
        assert a in cache
        assert b not in cache

    def test_shared_across_threads(self):
        """Many threads hitting a tiny cache never lose a table mid-lookup."""
        cache = ToneLUTCache(max_entries=2)
        params = [EditParams(contrast=float(v)) for v in range(5)]
        errors = []

        def worker():
            try:
                for _ in range(20):
                    for p in params:
                        assert cache.get(p, size=64).shape == (64,)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) == 2
        stats = cache.stats()
        assert stats["hits"] + stats["misses"] == 8 * 20 * len(params)

    def test_clear(self):
        cache = ToneLUTCache()
        cache.get(EditParams(blacks=5.0))
        cache.clear()
        assert len(cache) == 0
        assert cache.stats() == {"entries": 0, "hits": 0, "misses": 0}


class TestToneCurveStage:
    """Tests for the ToneCurve stage."""

    def test_identity_returns_same_buffer(self, random_buffer, identity_params):
        cache = ToneLUTCache()
        assert ToneCurve(cache).apply(random_buffer, identity_params) is random_buffer
        assert len(cache) == 0

    def test_uses_supplied_cache(self, gradient_buffer):
        cache = ToneLUTCache()
        stage = ToneCurve(cache)
        params = EditParams(contrast=30.0, highlights=-20.0)
        first = stage.apply(gradient_buffer, params)
        second = stage.apply(gradient_buffer, params)
        assert cache.stats()["misses"] == 1
        assert cache.stats()["hits"] == 1
        assert first == second

    def test_output_non_negative_and_input_untouched(self, random_buffer):
        before = random_buffer.data.copy()
        result = ToneCurve(ToneLUTCache()).apply(random_buffer, EditParams(blacks=-80.0, contrast=50.0))
        assert result.data.min() >= 0.0
        np.testing.assert_array_equal(random_buffer.data, before)

    def test_buffer_type(self, mid_gray):
        result = ToneCurve(ToneLUTCache()).apply(mid_gray, EditParams(shadows=50.0))
        assert isinstance(result, PixelBuffer)
        assert result.shape == mid_gray.shape
