"""
Geometric helpers for the Rectification module.

Computes output dimensions of the rectified image and validates the
quadrilateral before the homography is solved.
"""

import logging
import math
from typing import Optional, Tuple, Union

import numpy as np

from src.common.types import Quadrilateral
from src.rectification.errors import DegenerateQuadrilateralError

logger = logging.getLogger(__name__)

# Relative tolerance for collinearity, scaled by the squared quad extent
COLLINEAR_TOLERANCE = 1e-9


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def calculate_edge_lengths(quad: Quadrilateral) -> Tuple[float, float, float, float]:
    """
    Calculate the length of all 4 edges of a quadrilateral.

    Returns:
        Tuple of (top_edge, right_edge, bottom_edge, left_edge) lengths.

    Example:
        >>> quad = Quadrilateral.from_points(
        ...     [[100, 100], [400, 100], [100, 200], [400, 200]]
        ... )
        >>> calculate_edge_lengths(quad)
        (300.0, 100.0, 300.0, 100.0)
    """
    top_edge = quad.top_left.distance_to(quad.top_right)
    right_edge = quad.top_right.distance_to(quad.bottom_right)
    bottom_edge = quad.bottom_left.distance_to(quad.bottom_right)
    left_edge = quad.top_left.distance_to(quad.bottom_left)

    logger.debug(
        f"Edge lengths - Top: {top_edge:.1f}, Right: {right_edge:.1f}, "
        f"Bottom: {bottom_edge:.1f}, Left: {left_edge:.1f}"
    )

    return top_edge, right_edge, bottom_edge, left_edge


def calculate_output_dimensions(
    quad: Quadrilateral, max_output_side: Optional[int] = None
) -> Tuple[int, int]:
    """
    Calculate the (width, height) of the rectified image.

    Width is the longer of the top and bottom edges, height the longer of the
    left and right edges, so no content is lost. Both are rounded half away
    from zero and clamped to at least 1 pixel.

    Args:
        quad: Quadrilateral in source pixel space.
        max_output_side: Optional cap on the longest side. When exceeded both
            sides are scaled down by the same factor.

    Returns:
        Tuple of (width, height) in pixels.

    Example:
        >>> quad = Quadrilateral.from_points(
        ...     [[100, 50], [300, 60], [90, 250], [310, 240]]
        ... )
        >>> calculate_output_dimensions(quad)
        (220, 200)
    """
    top, right, bottom, left = calculate_edge_lengths(quad)
    width = max(top, bottom)
    height = max(left, right)

    if max_output_side is not None and max(width, height) > max_output_side:
        scale = max_output_side / max(width, height)
        logger.debug(
            f"Scaling output by {scale:.3f} to respect max side {max_output_side}px"
        )
        width *= scale
        height *= scale

    out_width = max(1, round_half_away_from_zero(width))
    out_height = max(1, round_half_away_from_zero(height))

    logger.debug(f"Output dimensions: {out_width} x {out_height}")

    return out_width, out_height


def validate_quadrilateral(quad: Quadrilateral) -> None:
    """
    Reject quadrilaterals that cannot define a rectification target.

    A quadrilateral is degenerate when any three of its corners are collinear
    (which includes coincident corners). Only collinearity is rejected:
    mislabelled but otherwise valid corners still rectify, into a mirrored or
    rotated image.

    Raises:
        DegenerateQuadrilateralError: If any corner triple is collinear.
    """
    # Cyclic order around the boundary: TL -> TR -> BR -> BL
    ring = np.array(
        [
            quad.top_left.to_tuple(),
            quad.top_right.to_tuple(),
            quad.bottom_right.to_tuple(),
            quad.bottom_left.to_tuple(),
        ],
        dtype=np.float64,
    )

    extent = float(np.ptp(ring, axis=0).max())
    tolerance = COLLINEAR_TOLERANCE * max(extent, 1.0) ** 2

    for i in range(4):
        p1 = ring[i]
        p2 = ring[(i + 1) % 4]
        p3 = ring[(i + 2) % 4]

        v1 = p2 - p1
        v2 = p3 - p1
        cross = v1[0] * v2[1] - v1[1] * v2[0]

        if abs(cross) <= tolerance:
            raise DegenerateQuadrilateralError(
                "Quadrilateral is degenerate: corners "
                f"{tuple(p1)}, {tuple(p2)}, {tuple(p3)} are collinear or coincident"
            )


def order_points(pts: Union[np.ndarray, list]) -> Quadrilateral:
    """
    Label 4 unordered points as Top-Left, Top-Right, Bottom-Left, Bottom-Right.

    For callers holding an unlabelled point set (e.g. a contour). The
    rectifier itself never reorders corners. The assignment uses geometric
    properties in pixel space:
    - Top-Left: smallest sum (x + y)
    - Bottom-Right: largest sum (x + y)
    - Top-Right: smallest difference (y - x)
    - Bottom-Left: largest difference (y - x)

    Args:
        pts: Array of 4 points with shape (4, 2), in any order.

    Returns:
        Labelled Quadrilateral.

    Raises:
        ValueError: If input does not contain exactly 4 points.
        DegenerateQuadrilateralError: If the labelling does not yield a
            convex quadrilateral (two labels landed on the same point, or the
            shape is concave or self-intersecting).
    """
    pts = np.asarray(pts, dtype=np.float64)

    if pts.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )

    s = pts.sum(axis=1)
    diff = np.diff(pts, axis=1).ravel()

    indices = [np.argmin(s), np.argmin(diff), np.argmax(diff), np.argmax(s)]
    if len(set(int(i) for i in indices)) != 4:
        raise DegenerateQuadrilateralError(
            f"Cannot assign distinct corner labels to points {pts.tolist()}"
        )

    quad = Quadrilateral.from_points(pts[indices])

    logger.debug(
        f"Ordered points: TL={quad.top_left}, TR={quad.top_right}, "
        f"BL={quad.bottom_left}, BR={quad.bottom_right}"
    )

    if not is_convex(quad):
        raise DegenerateQuadrilateralError(
            "Ordered points do not form a convex quadrilateral. "
            "The points may be self-intersecting or concave."
        )

    return quad


def is_convex(quad: Quadrilateral) -> bool:
    """
    Check if a quadrilateral is convex in its TL -> TR -> BR -> BL ring order.

    Convex iff the cross products of consecutive edges all share one sign.
    """
    ring = np.array(
        [
            quad.top_left.to_tuple(),
            quad.top_right.to_tuple(),
            quad.bottom_right.to_tuple(),
            quad.bottom_left.to_tuple(),
        ],
        dtype=np.float64,
    )

    cross_products = []
    for i in range(4):
        v1 = ring[(i + 1) % 4] - ring[i]
        v2 = ring[(i + 2) % 4] - ring[(i + 1) % 4]
        cross_products.append(v1[0] * v2[1] - v1[1] * v2[0])

    # Small tolerance for numerical noise near zero
    convex = all(cp > 1e-6 for cp in cross_products) or all(
        cp < -1e-6 for cp in cross_products
    )

    if not convex:
        logger.warning(
            f"Non-convex quadrilateral detected. Cross products: {cross_products}"
        )

    return convex
