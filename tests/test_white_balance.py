"""Tests for the white balance stage and its matrix derivation."""

import numpy as np
import pytest

from darkroom.processing.params import EditParams
from darkroom.processing.white_balance import (
    WhiteBalance,
    is_identity_matrix,
    planckian_xy,
    uv60_to_xy,
    wb_matrix,
    xy_to_uv60,
    xy_to_xyz,
)
from darkroom.utils.errors import InvalidDimensionsError
from darkroom.utils.image_buf import PixelBuffer


def gray(value=0.5):
    return PixelBuffer.filled(1, 1, (value, value, value))


class TestWBMatrix:
    """Tests for the shared matrix derivation."""

    def test_identity_at_reference(self):
        """5500K with zero tint is the identity matrix."""
        m = wb_matrix(5500.0, 0.0)
        np.testing.assert_allclose(m, np.eye(3), atol=1e-6)
        assert is_identity_matrix(m)

    def test_matrix_is_float32_3x3(self):
        m = wb_matrix(6500.0, 10.0)
        assert m.shape == (3, 3)
        assert m.dtype == np.float32

    def test_temperature_clamped(self):
        np.testing.assert_array_equal(wb_matrix(100.0, 0.0), wb_matrix(1667.0, 0.0))
        np.testing.assert_array_equal(wb_matrix(90000.0, 0.0), wb_matrix(25000.0, 0.0))

    def test_planckian_known_values(self):
        """D65 (~6504K) and Illuminant A (~2856K) lie near the locus fit."""
        x, y = planckian_xy(6504.0)
        assert x == pytest.approx(0.3127, abs=0.003)
        assert y == pytest.approx(0.3290, abs=0.006)
        x, y = planckian_xy(2856.0)
        assert x == pytest.approx(0.4476, abs=0.005)
        assert y == pytest.approx(0.4074, abs=0.008)

    def test_uv60_round_trip(self):
        u, v = xy_to_uv60(0.3127, 0.3290)
        x, y = uv60_to_xy(u, v)
        assert x == pytest.approx(0.3127, abs=1e-10)
        assert y == pytest.approx(0.3290, abs=1e-10)

    def test_xy_to_xyz_degenerate(self):
        np.testing.assert_array_equal(xy_to_xyz(0.3, 0.0), [0.0, 1.0, 0.0])

    def test_red_blue_ratio_rises_with_temperature(self):
        prev = 0.0
        for temp in range(2500, 12001, 500):
            m = wb_matrix(temp, 0.0)
            r = max(float(m[0].sum()) * 0.5, 0.001)
            b = max(float(m[2].sum()) * 0.5, 0.001)
            assert r / b >= prev - 0.01
            prev = r / b

    def test_determinant_reasonable(self):
        for temp in range(2500, 15001, 500):
            det = np.linalg.det(wb_matrix(temp, 0.0).astype(np.float64))
            assert 0.2 < det < 5.0


class TestWhiteBalanceStage:
    """Tests for WhiteBalance.apply."""

    def test_identity_returns_same_buffer(self, random_buffer, identity_params):
        result = WhiteBalance().apply(random_buffer, identity_params)
        assert result is random_buffer

    def test_warm_setting_boosts_red(self):
        result = WhiteBalance().apply(gray(), EditParams(wb_temp=7000.0))
        r, g, b = result.data[0, 0]
        assert r > b
        assert r > 0.5

    def test_cool_setting_boosts_blue(self):
        result = WhiteBalance().apply(gray(), EditParams(wb_temp=3500.0))
        r, g, b = result.data[0, 0]
        assert b > r
        assert b > 0.5

    def test_positive_tint_shifts_magenta(self):
        r, g, b = WhiteBalance().apply(gray(), EditParams(wb_tint=30.0)).data[0, 0]
        assert g < r or g < b

    def test_negative_tint_shifts_green(self):
        r, g, b = WhiteBalance().apply(gray(), EditParams(wb_tint=-30.0)).data[0, 0]
        assert g > r and g > b

    @pytest.mark.parametrize("temp", [1667.0, 2500.0, 25000.0])
    def test_extreme_temperatures_finite_positive(self, temp):
        result = WhiteBalance().apply(gray(), EditParams(wb_temp=temp, wb_tint=150.0))
        assert np.all(np.isfinite(result.data))
        assert np.all(result.data >= 0.0)

    def test_output_floored_at_zero(self):
        """Saturated primaries pushed out of gamut are floored, not negative."""
        buf = PixelBuffer.from_data(3, 1, [1, 0, 0, 0, 1, 0, 0, 0, 1])
        result = WhiteBalance().apply(buf, EditParams(wb_temp=2000.0, wb_tint=-150.0))
        assert result.data.min() >= 0.0

    def test_hdr_input(self):
        buf = PixelBuffer.from_data(1, 1, [2.0, 1.5, 3.0])
        result = WhiteBalance().apply(buf, EditParams(wb_temp=4000.0))
        assert np.all(np.isfinite(result.data))
        assert result.data.max() > 1.0

    def test_input_not_mutated(self, random_buffer):
        before = random_buffer.data.copy()
        WhiteBalance().apply(random_buffer, EditParams(wb_temp=8000.0))
        np.testing.assert_array_equal(random_buffer.data, before)

    def test_matches_matrix_product(self, random_buffer):
        params = EditParams(wb_temp=4200.0, wb_tint=-12.0)
        m = wb_matrix(params.wb_temp, params.wb_tint).astype(np.float64)
        expected = np.maximum(random_buffer.data.astype(np.float64) @ m.T, 0.0)
        result = WhiteBalance().apply(random_buffer, params)
        np.testing.assert_allclose(result.data, expected, rtol=1e-5, atol=1e-6)

    def test_invalid_dimensions(self):
        buf = PixelBuffer.filled(1, 1, (0.5, 0.5, 0.5))
        buf.width = 0
        with pytest.raises(InvalidDimensionsError):
            WhiteBalance().apply(buf, EditParams(wb_temp=6000.0))
