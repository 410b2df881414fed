"""Projective transform between two quadrilaterals."""
import logging
from typing import Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

IDENTITY_COEFFS = np.array([1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0])


def _coefficients(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """
    Least squares fit of the 8 homography coefficients.

    Args:
        src: (4, 2) source corners
        dst: (4, 2) destination corners

    Returns:
        Coefficients (a, b, c, d, e, f, g, h) such that
        x' = (a x + b y + c) / (g x + h y + 1), y' = (d x + e y + f) / (g x + h y + 1)
    """
    rows = []
    for (x, y), (u, v) in zip(src, dst):
        rows.append([x, y, 1.0, 0.0, 0.0, 0.0, -u * x, -u * y])
        rows.append([0.0, 0.0, 0.0, x, y, 1.0, -v * x, -v * y])
    a = np.array(rows)
    b = dst.reshape(-1)

    try:
        normal_inv = np.linalg.inv(a.T @ a)
    except np.linalg.LinAlgError:
        logger.debug("Singular perspective system, using identity")
        return IDENTITY_COEFFS.copy()
    if not np.all(np.isfinite(normal_inv)):
        return IDENTITY_COEFFS.copy()

    return np.round(normal_inv @ a.T @ b, 10)


class PerspectiveTransform:
    """Maps one 2D quadrilateral onto another given their four corners."""

    def __init__(self, coeffs: np.ndarray = IDENTITY_COEFFS, coeffs_inv: np.ndarray = IDENTITY_COEFFS):
        self.coeffs = np.array(coeffs, dtype=np.float64)
        self.coeffs_inv = np.array(coeffs_inv, dtype=np.float64)

    @classmethod
    def from_points(cls, src_pts: Sequence[Point], dst_pts: Sequence[Point]) -> "PerspectiveTransform":
        src = np.asarray(src_pts, dtype=np.float64).reshape(4, 2)
        dst = np.asarray(dst_pts, dtype=np.float64).reshape(4, 2)
        return cls(_coefficients(src, dst), _coefficients(dst, src))

    @staticmethod
    def _apply(c: np.ndarray, point: Point) -> Point:
        x, y = point
        w = c[6] * x + c[7] * y + 1.0
        return (
            float((c[0] * x + c[1] * y + c[2]) / w),
            float((c[3] * x + c[4] * y + c[5]) / w),
        )

    def transform(self, point: Point) -> Point:
        return self._apply(self.coeffs, point)

    def transform_inverse(self, point: Point) -> Point:
        return self._apply(self.coeffs_inv, point)

    def __repr__(self) -> str:
        return f"PerspectiveTransform({self.coeffs.tolist()})"
