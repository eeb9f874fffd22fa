"""Tests for PixelBuffer and EditParams."""

import numpy as np
import pytest

from darkroom.processing.params import EditParams
from darkroom.utils.errors import ConfigurationError, InvalidDimensionsError
from darkroom.utils.image_buf import PixelBuffer, ensure_valid


class TestPixelBuffer:
    """Tests for buffer construction and helpers."""

    def test_from_data(self):
        buf = PixelBuffer.from_data(2, 1, [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        assert buf.width == 2
        assert buf.height == 1
        assert buf.data.dtype == np.float32
        assert buf.data.shape == (1, 2, 3)
        np.testing.assert_allclose(buf.data[0, 1], [0.4, 0.5, 0.6])

    def test_flat_is_row_major_interleaved(self):
        data = list(range(12))
        buf = PixelBuffer.from_data(2, 2, data)
        np.testing.assert_array_equal(buf.flat, np.array(data, dtype=np.float32))

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidDimensionsError):
            PixelBuffer.from_data(2, 2, [0.5] * 11)

    @pytest.mark.parametrize("width,height", [(0, 4), (4, 0), (0, 0)])
    def test_zero_dimensions_rejected(self, width, height):
        with pytest.raises(InvalidDimensionsError) as excinfo:
            PixelBuffer.from_data(width, height, [])
        assert excinfo.value.width == width
        assert excinfo.value.height == height

    def test_filled(self):
        buf = PixelBuffer.filled(3, 2, (0.1, 0.2, 0.3))
        assert buf.pixel_count == 6
        np.testing.assert_allclose(buf.data[1, 2], [0.1, 0.2, 0.3])

    def test_from_array_requires_three_channels(self):
        with pytest.raises(InvalidDimensionsError):
            PixelBuffer.from_array(np.zeros((4, 4, 4), dtype=np.float32))

    def test_copy_is_independent(self):
        buf = PixelBuffer.filled(2, 2, (0.5, 0.5, 0.5))
        dup = buf.copy()
        dup.data[0, 0, 0] = 1.0
        assert buf.data[0, 0, 0] == pytest.approx(0.5)
        assert dup != buf

    def test_to_rgba_f32(self):
        buf = PixelBuffer.filled(2, 3, (0.1, 0.2, 0.3))
        rgba = buf.to_rgba_f32()
        assert rgba.shape == (3, 2, 4)
        assert rgba.dtype == np.float32
        assert np.all(rgba[:, :, 3] == 1.0)

    def test_downsample_noop_when_small(self):
        buf = PixelBuffer.filled(100, 50, (0.5, 0.5, 0.5))
        assert buf.downsample(200) is buf

    def test_downsample_reduces_and_preserves_average(self):
        buf = PixelBuffer.filled(1000, 500, (0.5, 0.25, 0.125))
        down = buf.downsample(100)
        assert down.width == 100
        assert down.height == 50
        np.testing.assert_allclose(down.data.mean(axis=(0, 1)), [0.5, 0.25, 0.125], atol=1e-5)

    def test_ensure_valid_passes(self):
        ensure_valid(PixelBuffer.filled(1, 1, (0, 0, 0)), "test")

    def test_ensure_valid_rejects_none(self):
        with pytest.raises(InvalidDimensionsError):
            ensure_valid(None, "test")


class TestEditParams:
    """Tests for the parameter set."""

    def test_defaults_are_identity(self):
        params = EditParams()
        assert params.is_identity()
        assert params == EditParams.identity()
        assert params.wb_temp == 5500.0
        assert (params.crop_w, params.crop_h) == (1.0, 1.0)

    def test_replace(self):
        params = EditParams().replace(exposure=1.0)
        assert params.exposure == 1.0
        assert not params.is_identity()
        assert EditParams().exposure == 0.0

    def test_dict_round_trip(self):
        params = EditParams(exposure=0.5, wb_temp=6500.0, vibrance=20.0, crop_x=0.1)
        assert EditParams.from_dict(params.to_dict()) == params

    def test_from_dict_missing_keys_take_defaults(self):
        params = EditParams.from_dict({"contrast": 15})
        assert params.contrast == 15.0
        assert params.wb_temp == 5500.0

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError) as excinfo:
            EditParams.from_dict({"clarity": 10.0})
        assert excinfo.value.setting_name == "clarity"

    @pytest.mark.parametrize("value", ["10", None, True, [1.0]])
    def test_from_dict_non_numeric(self, value):
        with pytest.raises(ConfigurationError):
            EditParams.from_dict({"exposure": value})

    def test_clamped(self):
        params = EditParams(exposure=9.0, wb_temp=500.0, contrast=-250.0, crop_w=1.5).clamped()
        assert params.exposure == 5.0
        assert params.wb_temp == 1667.0
        assert params.contrast == -100.0
        assert params.crop_w == 1.0

    def test_tone_key(self):
        params = EditParams(contrast=1, highlights=2, shadows=3, blacks=4)
        assert params.tone_key() == (1, 2, 3, 4)
