"""
Common type definitions for the rectification toolkit.

This module provides Pydantic-based value types for the core data structures
used throughout the package: points, quadrilaterals and raster images.

These types provide:
- Type validation and conversion
- Consistent interfaces across modules
- Helper methods for common operations
- Integration with numpy arrays and OpenCV
"""

from typing import Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_DTYPES = (np.uint8, np.uint16, np.float32)


class Point2D(BaseModel):
    """
    Immutable 2D point (x, y) with real-valued coordinates.

    The same type carries normalized coordinates (range [0, 1]) and
    pixel-space coordinates (origin top-left, y increasing downward);
    the convention is given by context.

    Example:
        >>> point = Point2D(x=100.5, y=20)
        >>> point.to_tuple()
        (100.5, 20.0)
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float]) -> float:
        """Accept any real number, including numpy scalars."""
        if isinstance(v, (int, float, np.integer, np.floating)) and not isinstance(
            v, bool
        ):
            value = float(v)
            if not np.isfinite(value):
                raise ValueError(f"Coordinate must be finite, got {value}")
            return value
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point2D":
        """
        Create Point2D from numpy array.

        Args:
            arr: Numpy array of shape (2,) with [x, y] coordinates.

        Returns:
            Point2D instance.

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]))

    @classmethod
    def from_list(cls, coords: Union[list, tuple]) -> "Point2D":
        """Create Point2D from a [x, y] list or tuple."""
        if len(coords) != 2:
            raise ValueError(f"Expected 2 coordinates, got {len(coords)}")
        return cls(x=coords[0], y=coords[1])

    def to_numpy(self, dtype: type = np.float64) -> np.ndarray:
        """Convert to numpy array of shape (2,)."""
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        """Euclidean distance to another point."""
        return float(np.hypot(self.x - other.x, self.y - other.y))

    def __add__(self, other: "Point2D") -> "Point2D":
        return Point2D(x=self.x + other.x, y=self.y + other.y)

    def __sub__(self, other: "Point2D") -> "Point2D":
        return Point2D(x=self.x - other.x, y=self.y - other.y)

    def __repr__(self) -> str:
        return f"Point2D(x={self.x}, y={self.y})"


class Quadrilateral(BaseModel):
    """
    Four semantically labelled corner points.

    The labels are meaningful: ``top_left`` always maps to output (0, 0)
    during rectification, whatever its position in the source. Mislabelled
    corners produce a mirrored or rotated result rather than an error.

    Example:
        >>> quad = Quadrilateral.from_points(
        ...     [[10, 10], [110, 10], [10, 60], [110, 60]]
        ... )
        >>> quad.top_right
        Point2D(x=110.0, y=10.0)
    """

    model_config = ConfigDict(frozen=True)

    top_left: Point2D
    top_right: Point2D
    bottom_left: Point2D
    bottom_right: Point2D

    @classmethod
    def from_points(cls, points: Union[np.ndarray, list]) -> "Quadrilateral":
        """
        Build a quadrilateral from 4 points in TL, TR, BL, BR order.

        Args:
            points: Array-like of shape (4, 2).

        Raises:
            ValueError: If input does not contain exactly 4 points.
        """
        pts = np.asarray(points, dtype=np.float64)
        if pts.shape != (4, 2):
            raise ValueError(
                f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
            )
        tl, tr, bl, br = (Point2D.from_numpy(p) for p in pts)
        return cls(top_left=tl, top_right=tr, bottom_left=bl, bottom_right=br)

    def corners(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        """Corners in TL, TR, BL, BR order."""
        return (self.top_left, self.top_right, self.bottom_left, self.bottom_right)

    def to_numpy(self, dtype: type = np.float64) -> np.ndarray:
        """Corners as an array of shape (4, 2) in TL, TR, BL, BR order."""
        return np.array([p.to_tuple() for p in self.corners()], dtype=dtype)

    def bounding_box(self) -> Tuple[float, float, float, float]:
        """Axis-aligned bounds as (x_min, y_min, x_max, y_max)."""
        pts = self.to_numpy()
        x_min, y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        return float(x_min), float(y_min), float(x_max), float(y_max)


class RasterImage(BaseModel):
    """
    Type-safe, immutable wrapper for image arrays (numpy.ndarray).

    Pixel-space convention: origin top-left, x to the right, y downward.
    The model is frozen and no function in this package writes into
    ``data``; operations always return a new RasterImage.

    Attributes:
        data: The underlying numpy array containing image data.
            Shape: (H, W) or (H, W, C) with C in {1, 3, 4}; 4 channels carry
            alpha in the last channel.
            Dtype: uint8, uint16 or float32.

    Example:
        >>> import cv2
        >>> image = RasterImage(data=cv2.imread("page.jpg"))
        >>> image.width, image.height
        (640, 480)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    data: np.ndarray = Field(..., description="Image data as numpy array")

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a usable raster.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype not in SUPPORTED_DTYPES:
            raise ValueError(
                f"Unsupported image dtype {v.dtype}. "
                "Expected one of uint8, uint16, float32"
            )

        return v

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        """Number of channels (1 for grayscale, 3 for BGR, 4 for BGRA)."""
        if len(self.data.shape) == 2:
            return 1
        return int(self.data.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    def contains(self, x: float, y: float) -> bool:
        """Check whether a pixel-space coordinate lies inside the image."""
        return 0.0 <= x < self.width and 0.0 <= y < self.height

    def sample(self, x: float, y: float) -> np.ndarray:
        """
        Bilinearly sample the image at a pixel-space coordinate.

        Coordinates outside the image are clamped to the edge. Interpolation
        weights are the fractional parts of the coordinate and blending is
        linear in the stored channel values.

        Returns:
            float64 array with one value per channel.
        """
        x = min(max(float(x), 0.0), self.width - 1.0)
        y = min(max(float(y), 0.0), self.height - 1.0)
        x0, y0 = int(np.floor(x)), int(np.floor(y))
        x1, y1 = min(x0 + 1, self.width - 1), min(y0 + 1, self.height - 1)
        fx, fy = x - x0, y - y0

        pixels = self.data.reshape(self.height, self.width, -1).astype(np.float64)
        top = pixels[y0, x0] * (1.0 - fx) + pixels[y0, x1] * fx
        bottom = pixels[y1, x0] * (1.0 - fx) + pixels[y1, x1] * fx
        return top * (1.0 - fy) + bottom * fy

    def to_numpy(self) -> np.ndarray:
        """Return the underlying numpy array."""
        return self.data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterImage):
            return False
        return self.data.dtype == other.data.dtype and np.array_equal(
            self.data, other.data
        )

    def __repr__(self) -> str:
        return f"RasterImage(shape={self.shape}, dtype={self.data.dtype})"
