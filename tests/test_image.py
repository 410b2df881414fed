"""Tests for the image container."""
import numpy as np
import pytest

from colortree.image import ColorImage
from colortree.types import Color


class TestColorImage:
    """Test ColorImage validation and access."""

    def test_dimensions_and_access(self):
        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[1, 2] = (10, 20, 30)
        image = ColorImage(pixels)
        assert (image.width, image.height) == (3, 2)
        assert image.get(2, 1) == Color(10, 20, 30)
        assert image.colors()[5] == Color(10, 20, 30)

    def test_alpha_channel_dropped(self):
        pixels = np.full((1, 1, 4), 200, dtype=np.uint8)
        assert ColorImage(pixels).to_array().shape == (1, 1, 3)

    @pytest.mark.parametrize("pixels", [
        np.zeros((4, 4), dtype=np.uint8),
        np.zeros((4, 4, 2), dtype=np.uint8),
        np.zeros((4, 4, 3), dtype=np.float32),
        [[(0, 0, 0)]],
    ])
    def test_invalid_input(self, pixels):
        with pytest.raises(ValueError):
            ColorImage(pixels)

    def test_filled(self):
        image = ColorImage.filled(3, 2, Color(1, 2, 3))
        assert set(image.colors()) == {Color(1, 2, 3)}
