"""Unit tests for BGRA frame conversion and encoder preparation."""

import numpy as np
import pytest

from src.common.types import RasterImage
from src.rectification.errors import InvalidImageError
from src.rectification.pixel_format import (
    prepare_for_encoding,
    raster_from_bgra,
    to_bgr,
)


def _padded_frame(width, height, stride):
    """Frame whose pixel bytes encode (row, col, channel) and padding is 0xEE."""
    buffer = np.full(stride * height, 0xEE, dtype=np.uint8)
    for row in range(height):
        for col in range(width):
            for channel in range(4):
                buffer[row * stride + col * 4 + channel] = row * 100 + col * 10 + channel
    return buffer


class TestRasterFromBgra:
    def test_tight_buffer(self):
        data = np.arange(2 * 3 * 4, dtype=np.uint8)

        image = raster_from_bgra(data.tobytes(), width=3, height=2)

        assert image.shape == (2, 3, 4)
        np.testing.assert_array_equal(image.data, data.reshape(2, 3, 4))

    def test_padded_rows_are_stripped(self):
        buffer = _padded_frame(width=3, height=2, stride=16)

        image = raster_from_bgra(buffer.tobytes(), width=3, height=2, bytes_per_row=16)

        assert image.shape == (2, 3, 4)
        assert image.data[1, 2].tolist() == [120, 121, 122, 123]
        assert not (image.data == 0xEE).any()

    def test_last_row_padding_optional(self):
        buffer = _padded_frame(width=3, height=2, stride=16)[: 16 + 12]

        image = raster_from_bgra(buffer, width=3, height=2, bytes_per_row=16)

        assert image.data[1, 0].tolist() == [100, 101, 102, 103]

    def test_result_does_not_alias_buffer(self):
        buffer = bytearray(np.zeros(2 * 2 * 4, dtype=np.uint8).tobytes())

        image = raster_from_bgra(buffer, width=2, height=2)
        buffer[0] = 255

        assert image.data[0, 0, 0] == 0

    def test_buffer_too_small(self):
        with pytest.raises(InvalidImageError, match="too small"):
            raster_from_bgra(bytes(20), width=3, height=2)

    def test_stride_smaller_than_row(self):
        with pytest.raises(InvalidImageError, match="bytes_per_row"):
            raster_from_bgra(bytes(64), width=3, height=2, bytes_per_row=8)

    def test_non_positive_size(self):
        with pytest.raises(InvalidImageError):
            raster_from_bgra(bytes(16), width=0, height=2)


class TestToBgr:
    def test_drops_alpha(self):
        data = np.zeros((4, 5, 4), dtype=np.uint8)
        data[..., 0] = 10
        data[..., 1] = 20
        data[..., 2] = 30
        data[..., 3] = 255

        bgr = to_bgr(RasterImage(data=data))

        assert bgr.shape == (4, 5, 3)
        assert bgr.data[0, 0].tolist() == [10, 20, 30]

    def test_non_alpha_unchanged(self, noise_image):
        assert to_bgr(noise_image) is noise_image


class TestPrepareForEncoding:
    def test_alpha_dropped_for_jpeg(self):
        image = RasterImage(data=np.zeros((4, 5, 4), dtype=np.uint8))

        assert prepare_for_encoding(image, "flat.JPG").channels == 3

    @pytest.mark.parametrize("name", ["flat.png", "flat.tiff", "flat.webp"])
    def test_alpha_kept_where_supported(self, name):
        image = RasterImage(data=np.zeros((4, 5, 4), dtype=np.uint8))

        assert prepare_for_encoding(image, name) is image

    @pytest.mark.parametrize(
        "dtype, name",
        [(np.uint16, "flat.png"), (np.uint16, "flat.tif"), (np.float32, "flat.tiff")],
    )
    def test_deep_samples_kept_where_supported(self, dtype, name):
        image = RasterImage(data=np.zeros((4, 5, 3), dtype=dtype))

        assert prepare_for_encoding(image, name).data.dtype == dtype

    @pytest.mark.parametrize(
        "dtype, name",
        [(np.uint16, "flat.jpg"), (np.float32, "flat.png"), (np.float32, "flat.bmp")],
    )
    def test_deep_samples_rejected_for_narrow_formats(self, dtype, name):
        image = RasterImage(data=np.zeros((4, 5, 3), dtype=dtype))

        with pytest.raises(InvalidImageError, match="Cannot encode"):
            prepare_for_encoding(image, name)
