"""
Data types and structures for the Rectification module.

Provides type-safe containers for configuration and results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from src.common.types import Quadrilateral, RasterImage


class BorderMode(Enum):
    """How samples falling outside the source image are filled."""

    TRANSPARENT = "transparent"  # Zero in every channel, alpha included
    CLAMP = "clamp"  # Replicate the nearest edge pixel
    REFLECT = "reflect"  # Mirror without repeating the edge pixel

    @property
    def cv2_flag(self) -> int:
        """Matching OpenCV border constant."""
        return {
            BorderMode.TRANSPARENT: cv2.BORDER_CONSTANT,
            BorderMode.CLAMP: cv2.BORDER_REPLICATE,
            BorderMode.REFLECT: cv2.BORDER_REFLECT_101,
        }[self]


class DetectorOrigin(Enum):
    """Origin corner of the detector's normalized coordinate space."""

    BOTTOM_LEFT = "bottom_left"  # Platform vision convention, y up
    TOP_LEFT = "top_left"  # Same axes as pixel space


class DisplayGravity(Enum):
    """How the camera image is fitted into the display viewport."""

    RESIZE = "resize"  # Stretch to the viewport
    RESIZE_ASPECT = "resize_aspect"  # Fit inside, letterboxed
    RESIZE_ASPECT_FILL = "resize_aspect_fill"  # Fill, overflow cropped


@dataclass
class RectifierConfig:
    """Configuration for the resampling stage."""

    border_mode: BorderMode = BorderMode.CLAMP
    max_workers: int = 1  # Threads sampling disjoint row bands
    min_rows_per_band: int = 64
    max_output_side: Optional[int] = None  # Cap on the longest output side


@dataclass
class CoordinateConfig:
    """Configuration for detector coordinate conversion."""

    detector_origin: DetectorOrigin = DetectorOrigin.BOTTOM_LEFT


@dataclass
class DisplayConfig:
    """Configuration for overlay coordinates."""

    gravity: DisplayGravity = DisplayGravity.RESIZE


@dataclass
class RectificationConfig:
    """Complete rectification module configuration."""

    rectifier: RectifierConfig = field(default_factory=RectifierConfig)
    coordinates: CoordinateConfig = field(default_factory=CoordinateConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)


@dataclass
class QuadObservation:
    """
    Detector output for one frame.

    Attributes:
        quad: Corners in normalized coordinates, range [0, 1] per axis, in the
            detector's origin convention.
        confidence: Detector confidence [0.0, 1.0]; filtering already
            happened upstream.
    """

    quad: Quadrilateral
    confidence: float = 1.0


@dataclass
class RectificationResult:
    """
    Output from the rectifier.

    Attributes:
        image: Newly allocated rectified raster.
        homography: 3x3 matrix mapping the unit square onto the source
            quadrilateral in pixel space.
        border_mode: Border policy used for out-of-bounds samples.
        coverage: Fraction of output pixels whose source coordinate fell
            inside the source image.
    """

    image: RasterImage
    homography: np.ndarray
    border_mode: BorderMode
    coverage: float

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def is_partial(self) -> bool:
        """True if some output pixels were filled by the border policy."""
        return self.coverage < 1.0
