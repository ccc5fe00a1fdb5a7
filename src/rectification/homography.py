"""
Planar homography from the unit square onto a quadrilateral.

The transform H maps (s, t) in [0, 1] x [0, 1] to source pixel space:

    x = (h00*s + h01*t + h02) / (h20*s + h21*t + 1)
    y = (h10*s + h11*t + h12) / (h20*s + h21*t + 1)

with (0,0)->TL, (1,0)->TR, (0,1)->BL, (1,1)->BR. The eight unknowns are found
from the four point correspondences as an 8x8 linear system.
"""

import logging
from typing import Tuple

import numpy as np

from src.common.types import Point2D, Quadrilateral
from src.rectification.errors import DegenerateQuadrilateralError

logger = logging.getLogger(__name__)

UNIT_SQUARE = np.array(
    [
        [0.0, 0.0],  # Top-Left
        [1.0, 0.0],  # Top-Right
        [0.0, 1.0],  # Bottom-Left
        [1.0, 1.0],  # Bottom-Right
    ],
    dtype=np.float64,
)

# Below this |det(H)| relative to the quad scale the mapping is singular
SINGULAR_TOLERANCE = 1e-12


def solve_homography(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """
    Solve the 3x3 homography mapping 4 source points onto 4 destination points.

    Args:
        src: Array of shape (4, 2).
        dst: Array of shape (4, 2), corresponding to ``src`` row by row.

    Returns:
        3x3 float64 matrix normalized so that H[2, 2] == 1.

    Raises:
        DegenerateQuadrilateralError: If the linear system is singular.
    """
    src = np.asarray(src, dtype=np.float64)
    dst = np.asarray(dst, dtype=np.float64)

    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)

    for i in range(4):
        x_s, y_s = src[i]
        x_d, y_d = dst[i]

        a[2 * i] = [x_s, y_s, 1.0, 0.0, 0.0, 0.0, -x_d * x_s, -x_d * y_s]
        a[2 * i + 1] = [0.0, 0.0, 0.0, x_s, y_s, 1.0, -y_d * x_s, -y_d * y_s]
        b[2 * i] = x_d
        b[2 * i + 1] = y_d

    try:
        h = np.linalg.solve(a, b)
    except np.linalg.LinAlgError as e:
        raise DegenerateQuadrilateralError(
            f"Homography system is singular for points {dst.tolist()}"
        ) from e

    return np.append(h, 1.0).reshape(3, 3)


def unit_square_to_quad(quad: Quadrilateral) -> np.ndarray:
    """
    Homography mapping the unit square onto ``quad`` in pixel space.

    Raises:
        DegenerateQuadrilateralError: If no invertible mapping exists.
    """
    corners = quad.to_numpy()
    matrix = solve_homography(UNIT_SQUARE, corners)

    scale = max(float(np.ptp(corners, axis=0).max()), 1.0)
    det = float(np.linalg.det(matrix))
    if not np.isfinite(det) or abs(det) <= SINGULAR_TOLERANCE * scale**2:
        raise DegenerateQuadrilateralError(
            f"Homography is not invertible (det={det:.3e}) for {corners.tolist()}"
        )

    logger.debug(f"Unit square -> quad homography:\n{matrix}")
    return matrix


def apply_homography(
    matrix: np.ndarray, s: np.ndarray, t: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map coordinate arrays through a homography.

    Args:
        matrix: 3x3 homography.
        s: X inputs, any shape.
        t: Y inputs, broadcastable with ``s``.

    Returns:
        Tuple of (x, y) float64 arrays.
    """
    s = np.asarray(s, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)

    w = matrix[2, 0] * s + matrix[2, 1] * t + matrix[2, 2]
    x = (matrix[0, 0] * s + matrix[0, 1] * t + matrix[0, 2]) / w
    y = (matrix[1, 0] * s + matrix[1, 1] * t + matrix[1, 2]) / w
    return x, y


def transform_point(matrix: np.ndarray, point: Point2D) -> Point2D:
    """Map a single point through a homography."""
    x, y = apply_homography(matrix, point.x, point.y)
    return Point2D(x=float(x), y=float(y))
