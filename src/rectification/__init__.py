"""
Quadrilateral Rectification

Maps a detected quadrilateral region of an image onto a flat, axis-aligned
image, as if the planar surface had been photographed head-on.

Stages:
1. Coordinate conversion (normalized detector space -> pixel space)
2. Geometric validation (degenerate corners, source overlap)
3. Homography solve (unit square -> quadrilateral)
4. Bilinear resampling with a configurable border policy
"""

from src.rectification.config_loader import load_config
from src.rectification.coordinates import (
    normalized_to_display,
    normalized_to_pixel,
    observation_to_pixel_quad,
    pixel_to_normalized,
    quad_normalized_to_display,
    quad_normalized_to_pixel,
    quad_pixel_to_normalized,
)
from src.rectification.errors import (
    DegenerateQuadrilateralError,
    InvalidImageError,
    OutOfBoundsError,
    RectificationError,
)
from src.rectification.geometry import calculate_output_dimensions, order_points
from src.rectification.pixel_format import (
    prepare_for_encoding,
    raster_from_bgra,
    to_bgr,
)
from src.rectification.rectifier import QuadRectifier, rectify_quadrilateral
from src.rectification.types import (
    BorderMode,
    DetectorOrigin,
    DisplayGravity,
    QuadObservation,
    RectificationConfig,
    RectificationResult,
)

__all__ = [
    "QuadRectifier",
    "rectify_quadrilateral",
    "load_config",
    "calculate_output_dimensions",
    "order_points",
    "normalized_to_pixel",
    "pixel_to_normalized",
    "quad_normalized_to_pixel",
    "quad_pixel_to_normalized",
    "observation_to_pixel_quad",
    "normalized_to_display",
    "quad_normalized_to_display",
    "raster_from_bgra",
    "to_bgr",
    "prepare_for_encoding",
    "BorderMode",
    "DetectorOrigin",
    "DisplayGravity",
    "QuadObservation",
    "RectificationConfig",
    "RectificationResult",
    "RectificationError",
    "DegenerateQuadrilateralError",
    "OutOfBoundsError",
    "InvalidImageError",
]
