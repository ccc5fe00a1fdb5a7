"""
Frame boundary conversions.

Camera frames arrive as 32-bit BGRA buffers whose rows may be padded
(``bytes_per_row`` >= 4 * width). This module turns them into RasterImage
values and prepares rasters for encoding.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from src.common.types import RasterImage
from src.rectification.errors import InvalidImageError

logger = logging.getLogger(__name__)

BGRA_BYTES_PER_PIXEL = 4


def raster_from_bgra(
    buffer: Union[bytes, bytearray, memoryview, np.ndarray],
    width: int,
    height: int,
    bytes_per_row: Optional[int] = None,
) -> RasterImage:
    """
    Wrap a raw 32-bit BGRA frame buffer as a 4-channel RasterImage.

    Row padding is stripped and the pixels are copied, so the returned image
    does not alias the capture buffer.

    Args:
        buffer: Raw frame bytes, or a uint8 array holding them.
        width: Frame width in pixels.
        height: Frame height in pixels.
        bytes_per_row: Stride of one row. Defaults to ``4 * width``.

    Returns:
        RasterImage of shape (height, width, 4), dtype uint8, BGRA order.

    Raises:
        InvalidImageError: If the dimensions, stride or buffer length are
            inconsistent.
    """
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Frame size must be positive, got {width}x{height}")

    row_bytes = width * BGRA_BYTES_PER_PIXEL
    stride = row_bytes if bytes_per_row is None else int(bytes_per_row)
    if stride < row_bytes:
        raise InvalidImageError(
            f"bytes_per_row ({stride}) is smaller than 4 * width ({row_bytes})"
        )

    if isinstance(buffer, np.ndarray):
        flat = np.ascontiguousarray(buffer, dtype=np.uint8).ravel()
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)

    # The last row does not need trailing padding
    required = stride * (height - 1) + row_bytes
    if flat.size < required:
        raise InvalidImageError(
            f"Frame buffer too small: {flat.size} bytes, need at least {required} "
            f"for {width}x{height} with stride {stride}"
        )

    rows = np.lib.stride_tricks.as_strided(
        flat, shape=(height, row_bytes), strides=(stride, 1), writeable=False
    )
    pixels = rows.reshape(height, width, BGRA_BYTES_PER_PIXEL).copy()

    logger.debug(f"Wrapped BGRA frame {width}x{height} (stride {stride})")
    return RasterImage(data=pixels)


def to_bgr(image: RasterImage) -> RasterImage:
    """
    Drop the alpha channel of a BGRA raster; other rasters are returned as is.

    Only the channel layout changes: sample values are not converted.
    """
    if not image.has_alpha:
        return image
    return RasterImage(data=cv2.cvtColor(image.data, cv2.COLOR_BGRA2BGR))


# Sample types each encoder can store; anything not listed is 8-bit only
ENCODER_DTYPES = {
    ".png": (np.uint8, np.uint16),
    ".pgm": (np.uint8, np.uint16),
    ".ppm": (np.uint8, np.uint16),
    ".pnm": (np.uint8, np.uint16),
    ".tif": (np.uint8, np.uint16, np.float32),
    ".tiff": (np.uint8, np.uint16, np.float32),
}

# Encoders that keep a fourth (alpha) channel
ALPHA_SUFFIXES = {".png", ".tif", ".tiff", ".webp"}


def prepare_for_encoding(
    image: RasterImage, file_path: Union[str, Path]
) -> RasterImage:
    """
    Fit a raster to the encoder chosen by the file extension.

    Alpha is dropped for formats without an alpha channel (JPEG, BMP, ...).
    Sample types the format cannot store are rejected rather than saturated.

    Raises:
        InvalidImageError: If the raster's sample type does not fit the format.
    """
    suffix = Path(file_path).suffix.lower()
    allowed = ENCODER_DTYPES.get(suffix, (np.uint8,))
    if image.data.dtype not in allowed:
        names = ", ".join(np.dtype(d).name for d in allowed)
        raise InvalidImageError(
            f"Cannot encode {image.data.dtype} samples as '{suffix or 'no extension'}' "
            f"(supported: {names}); use .png or .tiff for deep images"
        )

    if image.has_alpha and suffix not in ALPHA_SUFFIXES:
        logger.debug(f"Dropping alpha channel for '{suffix}' output")
        return to_bgr(image)
    return image
