"""Raster image container and loading."""
from pathlib import Path
from typing import List, Union

import numpy as np
from PIL import Image
from PIL import ImageOps

from colortree.types import ClusteringError, Color


class ColorImage:
    """8-bit RGB image addressable by (x, y)."""

    def __init__(self, pixels: np.ndarray):
        if not isinstance(pixels, np.ndarray):
            raise ValueError("Input must be a numpy array")
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(f"Input must be HxWx3 or HxWx4 array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError("Input must be uint8 array")
        self._pixels = np.ascontiguousarray(pixels[..., :3])

    @classmethod
    def filled(cls, width: int, height: int, color: Color) -> "ColorImage":
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[...] = color
        return cls(pixels)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    def get(self, x: int, y: int) -> Color:
        r, g, b = self._pixels[y, x]
        return Color(int(r), int(g), int(b))

    def colors(self) -> List[Color]:
        """All pixels in row-major order."""
        return [Color._make(p) for p in self._pixels.reshape(-1, 3).tolist()]

    def to_array(self) -> np.ndarray:
        return self._pixels.copy()


def load_image(path: Union[str, Path]) -> ColorImage:
    """
    Load an image file as a ColorImage.

    Transparent pixels are composited on white.

    Raises:
        FileNotFoundError: If file doesn't exist
        ClusteringError: If file cannot be decoded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    try:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode in ('RGBA', 'LA', 'P'):
                img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[3])
                img = background
            elif img.mode != 'RGB':
                img = img.convert('RGB')
            return ColorImage(np.array(img, dtype=np.uint8))
    except (IOError, OSError) as e:
        raise ClusteringError(f"Failed to load image {path}: {e}")
