import pytest
import numpy as np

from darkroom.processing.params import EditParams
from darkroom.utils.image_buf import PixelBuffer


@pytest.fixture
def mid_gray():
    """Returns a 2x2 buffer of linear 18% gray."""
    return PixelBuffer.filled(2, 2, (0.18, 0.18, 0.18))


@pytest.fixture
def quadrant_buffer():
    """Returns a 100x100 buffer with red, green, blue and yellow quadrants."""
    data = np.zeros((100, 100, 3), dtype=np.float32)
    data[:50, :50] = [0.8, 0.05, 0.05]   # Red quadrant
    data[:50, 50:] = [0.05, 0.8, 0.05]   # Green quadrant
    data[50:, :50] = [0.05, 0.05, 0.8]   # Blue quadrant
    data[50:, 50:] = [0.8, 0.8, 0.05]    # Yellow quadrant
    return PixelBuffer.from_array(data)


@pytest.fixture
def gradient_buffer():
    """Returns a 37x21 horizontal luminance ramp from 0 to 1.2 (not a multiple of 16)."""
    ramp = np.linspace(0.0, 1.2, 37, dtype=np.float32)
    data = np.repeat(ramp[np.newaxis, :, np.newaxis], 21, axis=0)
    data = np.repeat(data, 3, axis=2)
    data[:, :, 0] *= 1.1
    data[:, :, 2] *= 0.8
    return PixelBuffer.from_array(data)


@pytest.fixture
def random_buffer():
    """Returns a seeded 40x30 buffer of scene-referred values in [0, 1.5)."""
    rng = np.random.default_rng(1234)
    data = rng.uniform(0.0, 1.5, size=(30, 40, 3)).astype(np.float32)
    return PixelBuffer.from_array(data)


@pytest.fixture
def identity_params():
    """Returns the identity parameter set."""
    return EditParams()
