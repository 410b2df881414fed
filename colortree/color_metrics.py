"""Color difference and same-color predicates."""
from functools import lru_cache
from typing import Tuple

import numpy as np

from colortree.types import Color

# Linear sRGB -> LMS and LMS' -> Oklab (Bjorn Ottosson, 2020).
_OKLAB_M1 = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])
_OKLAB_M2 = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660],
])

# Oklab squared distances are below ~1; this brings them near the RGB range.
OKLAB_SCALE = 255.0


def srgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB to linear RGB.

    Args:
        srgb: sRGB values in range [0, 1]

    Returns:
        Linear RGB values
    """
    return np.where(
        srgb <= 0.04045,
        srgb / 12.92,
        ((srgb + 0.055) / 1.055) ** 2.4
    )


def rgb_to_oklab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert 8-bit RGB to Oklab.

    Args:
        rgb: (..., 3) array of RGB values in range [0, 255]

    Returns:
        (..., 3) array of L, a, b
    """
    linear = srgb_to_linear(np.asarray(rgb, dtype=np.float64) / 255.0)
    lms = np.dot(linear, _OKLAB_M1.T)
    return np.dot(np.cbrt(lms), _OKLAB_M2.T)


@lru_cache(maxsize=65536)
def _oklab(color: Tuple[int, int, int]) -> Tuple[float, float, float]:
    lab = rgb_to_oklab(np.array(color))
    return float(lab[0]), float(lab[1]), float(lab[2])


def color_diff(a: Color, b: Color) -> int:
    """Sum of absolute channel differences, 0..765."""
    return abs(a[0] - b[0]) + abs(a[1] - b[1]) + abs(a[2] - b[2])


def oklab_color_diff(a: Color, b: Color) -> int:
    """Squared Oklab distance scaled to be comparable with color_diff."""
    la, aa, ba = _oklab(tuple(a))
    lb, ab, bb = _oklab(tuple(b))
    delta_sq = (la - lb) ** 2 + (aa - ab) ** 2 + (ba - bb) ** 2
    return int(delta_sq * OKLAB_SCALE)


def color_same(a: Color, b: Color, shift: int, tolerance: int) -> bool:
    """
    Quantized same-color test.

    Each channel is right-shifted by ``shift`` bits; the colors are the same
    iff every quantized channel differs by at most ``tolerance``.
    """
    return (
        abs((a[0] >> shift) - (b[0] >> shift)) <= tolerance
        and abs((a[1] >> shift) - (b[1] >> shift)) <= tolerance
        and abs((a[2] >> shift) - (b[2] >> shift)) <= tolerance
    )
