"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from colortree.image import ColorImage

WHITE = (255, 255, 255)
RED = (255, 0, 0)
DARK = (96, 96, 96)
LIGHT = (127, 127, 127)


@pytest.fixture
def nested_square():
    """20x20 red square inside a 40x40 white image."""
    pixels = np.full((40, 40, 3), WHITE, dtype=np.uint8)
    pixels[10:30, 10:30] = RED
    return ColorImage(pixels)


@pytest.fixture
def split_block():
    """
    20x20 white image with a 10x10 block in the middle.

    The block's left half is DARK and its right half LIGHT: the same color
    at the default quantization, different one bit finer.
    """
    pixels = np.full((20, 20, 3), WHITE, dtype=np.uint8)
    pixels[5:15, 5:10] = DARK
    pixels[5:15, 10:15] = LIGHT
    return ColorImage(pixels)


@pytest.fixture
def three_color_noise():
    """16x16 image of three far apart colors, placed at random."""
    rng = np.random.default_rng(7)
    palette = np.array([[0, 0, 0], [255, 0, 0], [0, 0, 255]], dtype=np.uint8)
    choice = rng.integers(0, 3, size=(16, 16))
    return ColorImage(palette[choice]), choice
