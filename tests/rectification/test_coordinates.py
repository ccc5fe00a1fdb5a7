"""
Unit tests for coordinate conversion.

Normalized detector space <-> pixel space, and normalized -> display space
for the overlay.
"""

import numpy as np
import pytest

from src.common.types import Point2D, Quadrilateral
from src.rectification.coordinates import (
    display_to_normalized,
    normalized_to_display,
    normalized_to_pixel,
    normalized_to_pixel_matrix,
    observation_to_pixel_quad,
    pixel_to_normalized,
    pixel_to_normalized_matrix,
    quad_normalized_to_display,
    quad_normalized_to_pixel,
    quad_pixel_to_normalized,
)
from src.rectification.types import DetectorOrigin, DisplayGravity, QuadObservation

GRID = [(x, y) for x in np.linspace(0, 1, 11) for y in np.linspace(0, 1, 11)]


class TestNormalizedToPixel:
    def test_bottom_left_origin_flips_vertically(self):
        assert normalized_to_pixel(Point2D(x=0, y=0), 400, 300).to_tuple() == (
            0.0,
            300.0,
        )
        assert normalized_to_pixel(Point2D(x=1, y=1), 400, 300).to_tuple() == (
            400.0,
            0.0,
        )

    def test_top_left_origin_only_scales(self):
        point = normalized_to_pixel(
            Point2D(x=0.25, y=0.5), 400, 300, DetectorOrigin.TOP_LEFT
        )

        assert point.to_tuple() == (100.0, 150.0)

    def test_matrix_is_affine(self):
        matrix = normalized_to_pixel_matrix(400, 300)

        np.testing.assert_allclose(
            matrix, [[400, 0, 0], [0, -300, 300], [0, 0, 1]]
        )

    def test_inverse_matrix(self):
        product = normalized_to_pixel_matrix(640, 480) @ pixel_to_normalized_matrix(
            640, 480
        )

        np.testing.assert_allclose(product, np.eye(3), atol=1e-12)

    @pytest.mark.parametrize("origin", list(DetectorOrigin))
    def test_round_trip(self, origin):
        for x, y in GRID:
            point = Point2D(x=x, y=y)
            pixel = normalized_to_pixel(point, 1920, 1080, origin)
            back = pixel_to_normalized(pixel, 1920, 1080, origin)

            assert back.to_tuple() == pytest.approx((x, y), abs=1e-12)

    def test_invalid_size(self):
        with pytest.raises(ValueError, match="must be positive"):
            normalized_to_pixel(Point2D(x=0.5, y=0.5), 0, 300)


class TestQuadConversion:
    def test_labels_travel_with_points(self):
        # Detector space, y up: the top edge has the larger y
        quad = Quadrilateral.from_points([[0.1, 0.9], [0.9, 0.9], [0.1, 0.1], [0.9, 0.1]])

        pixel = quad_normalized_to_pixel(quad, 400, 300)

        assert pixel.top_left.to_tuple() == pytest.approx((40.0, 30.0))
        assert pixel.bottom_right.to_tuple() == pytest.approx((360.0, 270.0))
        assert pixel.top_left.y < pixel.bottom_left.y

    def test_quad_round_trip(self, skewed_quad):
        normalized = quad_pixel_to_normalized(skewed_quad, 400, 300)
        back = quad_normalized_to_pixel(normalized, 400, 300)

        np.testing.assert_allclose(back.to_numpy(), skewed_quad.to_numpy(), atol=1e-9)

    def test_observation_to_pixel_quad(self):
        observation = QuadObservation(
            quad=Quadrilateral.from_points([[0, 1], [1, 1], [0, 0], [1, 0]]),
            confidence=0.8,
        )

        quad = observation_to_pixel_quad(observation, 200, 100)

        np.testing.assert_allclose(
            quad.to_numpy(), [[0, 0], [200, 0], [0, 100], [200, 100]]
        )


class TestDisplayTransform:
    def test_resize_is_flip_and_scale(self):
        point = normalized_to_display(Point2D(x=0.25, y=0.75), viewport=(375, 812))

        assert point.to_tuple() == pytest.approx((93.75, 203.0))

    def test_resize_full_quad(self):
        quad = Quadrilateral.from_points([[0, 1], [1, 1], [0, 0], [1, 0]])

        display = quad_normalized_to_display(quad, viewport=(375, 812))

        np.testing.assert_allclose(
            display.to_numpy(), [[0, 0], [375, 0], [0, 812], [375, 812]]
        )

    @pytest.mark.parametrize("gravity", list(DisplayGravity))
    def test_centre_maps_to_viewport_centre(self, gravity):
        point = normalized_to_display(
            Point2D(x=0.5, y=0.5),
            viewport=(375, 812),
            content_size=(1080, 1920),
            gravity=gravity,
        )

        assert point.to_tuple() == pytest.approx((187.5, 406.0))

    def test_aspect_fill_crops_width(self):
        # Portrait 1080x1920 content filling a 375x812 viewport: height fits,
        # width overflows symmetrically
        left = normalized_to_display(
            Point2D(x=0.0, y=0.5),
            viewport=(375, 812),
            content_size=(1080, 1920),
            gravity=DisplayGravity.RESIZE_ASPECT_FILL,
        )

        scale = 812 / 1920
        assert left.x == pytest.approx((375 - 1080 * scale) / 2)
        assert left.x < 0

    def test_aspect_letterboxes(self):
        top = normalized_to_display(
            Point2D(x=0.5, y=1.0),
            viewport=(375, 812),
            content_size=(1080, 1920),
            gravity=DisplayGravity.RESIZE_ASPECT,
        )

        scale = 375 / 1080
        assert top.y == pytest.approx((812 - 1920 * scale) / 2)
        assert top.y > 0

    @pytest.mark.parametrize("gravity", list(DisplayGravity))
    def test_display_round_trip(self, gravity):
        for x, y in GRID:
            point = Point2D(x=x, y=y)
            display = normalized_to_display(
                point, (375, 812), (1080, 1920), gravity
            )
            back = display_to_normalized(display, (375, 812), (1080, 1920), gravity)

            assert back.to_tuple() == pytest.approx((x, y), abs=1e-9)

    def test_aspect_gravity_requires_content_size(self):
        with pytest.raises(ValueError, match="content_size is required"):
            normalized_to_display(
                Point2D(x=0.5, y=0.5),
                viewport=(375, 812),
                gravity=DisplayGravity.RESIZE_ASPECT_FILL,
            )
