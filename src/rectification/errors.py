"""
Error taxonomy for the Rectification module.

All errors are local and recoverable: callers skip the current frame and try
again with the next detection.
"""


class RectificationError(ValueError):
    """Base class for all rectification failures."""


class DegenerateQuadrilateralError(RectificationError):
    """The quadrilateral cannot define a nonzero-area rectification target."""


class OutOfBoundsError(RectificationError):
    """No sampled pixel of the quadrilateral falls within the source image."""


class InvalidImageError(RectificationError):
    """The source raster or raw frame buffer is unusable."""
