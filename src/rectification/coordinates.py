"""
Coordinate conversion between detector, pixel and display spaces.

Detector output is normalized to [0, 1] per axis. Its origin convention is a
fixed external contract (``DetectorOrigin``): the platform vision framework
puts the origin at the bottom-left with y pointing up, while pixel space has
the origin at the top-left with y pointing down.

Every conversion here is an explicit 3x3 affine matrix so it can be tested,
inverted and composed independently of the rectifier:

    normalized -> pixel:    vertical flip (for BOTTOM_LEFT) + scale by image size
    normalized -> display:  vertical flip + scale by the viewport, optionally
                            fitted with aspect or aspect-fill gravity

Corner labels always travel with their points: converting a quadrilateral
never swaps top and bottom labels.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from src.common.types import Point2D, Quadrilateral
from src.rectification.types import DetectorOrigin, DisplayGravity, QuadObservation

logger = logging.getLogger(__name__)


def _validate_size(width: float, height: float, name: str) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"{name} must be positive, got {width}x{height}")


def _flip_matrix(origin: DetectorOrigin) -> np.ndarray:
    """Affine taking normalized detector coordinates to top-left normalized."""
    if origin == DetectorOrigin.BOTTOM_LEFT:
        return np.array(
            [[1.0, 0.0, 0.0], [0.0, -1.0, 1.0], [0.0, 0.0, 1.0]], dtype=np.float64
        )
    return np.eye(3, dtype=np.float64)


def apply_affine(matrix: np.ndarray, point: Point2D) -> Point2D:
    """Apply a 3x3 affine matrix to a point."""
    x = matrix[0, 0] * point.x + matrix[0, 1] * point.y + matrix[0, 2]
    y = matrix[1, 0] * point.x + matrix[1, 1] * point.y + matrix[1, 2]
    return Point2D(x=x, y=y)


def apply_affine_to_quad(matrix: np.ndarray, quad: Quadrilateral) -> Quadrilateral:
    """Apply a 3x3 affine matrix to every corner, keeping the labels."""
    return Quadrilateral(
        top_left=apply_affine(matrix, quad.top_left),
        top_right=apply_affine(matrix, quad.top_right),
        bottom_left=apply_affine(matrix, quad.bottom_left),
        bottom_right=apply_affine(matrix, quad.bottom_right),
    )


# =============================================================================
# Normalized <-> pixel space
# =============================================================================


def normalized_to_pixel_matrix(
    width: int, height: int, origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT
) -> np.ndarray:
    """
    Affine matrix converting normalized detector coordinates to pixel space.

    For BOTTOM_LEFT: x_px = x * width, y_px = (1 - y) * height.
    For TOP_LEFT:    x_px = x * width, y_px = y * height.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        origin: Detector origin convention.

    Returns:
        3x3 float64 affine matrix.
    """
    _validate_size(width, height, "Image size")
    scale = np.diag([float(width), float(height), 1.0])
    return scale @ _flip_matrix(origin)


def pixel_to_normalized_matrix(
    width: int, height: int, origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT
) -> np.ndarray:
    """Inverse of ``normalized_to_pixel_matrix``."""
    return np.linalg.inv(normalized_to_pixel_matrix(width, height, origin))


def normalized_to_pixel(
    point: Point2D,
    width: int,
    height: int,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Point2D:
    """
    Convert a normalized detector point to pixel space.

    Example:
        >>> normalized_to_pixel(Point2D(x=0.25, y=0.0), 400, 300)
        Point2D(x=100.0, y=300.0)
    """
    return apply_affine(normalized_to_pixel_matrix(width, height, origin), point)


def pixel_to_normalized(
    point: Point2D,
    width: int,
    height: int,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Point2D:
    """Convert a pixel-space point back to normalized detector coordinates."""
    return apply_affine(pixel_to_normalized_matrix(width, height, origin), point)


def quad_normalized_to_pixel(
    quad: Quadrilateral,
    width: int,
    height: int,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Quadrilateral:
    """Convert all four normalized corners to pixel space."""
    matrix = normalized_to_pixel_matrix(width, height, origin)
    return apply_affine_to_quad(matrix, quad)


def quad_pixel_to_normalized(
    quad: Quadrilateral,
    width: int,
    height: int,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Quadrilateral:
    """Convert all four pixel-space corners to normalized coordinates."""
    matrix = pixel_to_normalized_matrix(width, height, origin)
    return apply_affine_to_quad(matrix, quad)


def observation_to_pixel_quad(
    observation: QuadObservation,
    width: int,
    height: int,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Quadrilateral:
    """
    Convert a detector observation into a pixel-space quadrilateral.

    This is the step that must run before corner points are handed to the
    rectifier.
    """
    quad = quad_normalized_to_pixel(observation.quad, width, height, origin)
    logger.debug(
        f"Observation (confidence={observation.confidence:.2f}) "
        f"mapped to pixel quad {quad.to_numpy().tolist()}"
    )
    return quad


# =============================================================================
# Normalized -> display (overlay) space
# =============================================================================


def normalized_to_display_matrix(
    viewport: Tuple[float, float],
    content_size: Optional[Tuple[float, float]] = None,
    gravity: DisplayGravity = DisplayGravity.RESIZE,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> np.ndarray:
    """
    Affine matrix converting normalized detector coordinates to display space.

    With RESIZE the content is stretched over the viewport, so the transform
    is a flip plus a scale by the viewport size. RESIZE_ASPECT letterboxes the
    content inside the viewport; RESIZE_ASPECT_FILL scales it to cover the
    viewport and centres it, so part of it falls outside the visible area.

    Args:
        viewport: Display (width, height) in display units.
        content_size: Camera image (width, height); required by the aspect
            gravities, ignored by RESIZE.
        gravity: How the content is fitted into the viewport.
        origin: Detector origin convention.

    Returns:
        3x3 float64 affine matrix.

    Raises:
        ValueError: If a size is not positive or ``content_size`` is missing
            for an aspect gravity.
    """
    view_w, view_h = viewport
    _validate_size(view_w, view_h, "Viewport")

    if gravity == DisplayGravity.RESIZE:
        shown_w, shown_h = float(view_w), float(view_h)
    else:
        if content_size is None:
            raise ValueError(f"content_size is required for gravity {gravity.value}")
        content_w, content_h = content_size
        _validate_size(content_w, content_h, "Content size")

        ratios = (view_w / content_w, view_h / content_h)
        scale = min(ratios) if gravity == DisplayGravity.RESIZE_ASPECT else max(ratios)
        shown_w, shown_h = content_w * scale, content_h * scale

    offset_x = (view_w - shown_w) / 2.0
    offset_y = (view_h - shown_h) / 2.0

    fit = np.array(
        [[shown_w, 0.0, offset_x], [0.0, shown_h, offset_y], [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )
    return fit @ _flip_matrix(origin)


def normalized_to_display(
    point: Point2D,
    viewport: Tuple[float, float],
    content_size: Optional[Tuple[float, float]] = None,
    gravity: DisplayGravity = DisplayGravity.RESIZE,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Point2D:
    """Convert a normalized detector point to display coordinates."""
    matrix = normalized_to_display_matrix(viewport, content_size, gravity, origin)
    return apply_affine(matrix, point)


def display_to_normalized(
    point: Point2D,
    viewport: Tuple[float, float],
    content_size: Optional[Tuple[float, float]] = None,
    gravity: DisplayGravity = DisplayGravity.RESIZE,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Point2D:
    """Convert a display point (e.g. a tap) back to normalized coordinates."""
    matrix = normalized_to_display_matrix(viewport, content_size, gravity, origin)
    return apply_affine(np.linalg.inv(matrix), point)


def quad_normalized_to_display(
    quad: Quadrilateral,
    viewport: Tuple[float, float],
    content_size: Optional[Tuple[float, float]] = None,
    gravity: DisplayGravity = DisplayGravity.RESIZE,
    origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT,
) -> Quadrilateral:
    """
    Convert a normalized quadrilateral to display coordinates for the overlay.

    Example:
        >>> quad = Quadrilateral.from_points([[0, 1], [1, 1], [0, 0], [1, 0]])
        >>> display = quad_normalized_to_display(quad, viewport=(375, 812))
        >>> display.bottom_right
        Point2D(x=375.0, y=812.0)
    """
    matrix = normalized_to_display_matrix(viewport, content_size, gravity, origin)
    return apply_affine_to_quad(matrix, quad)
