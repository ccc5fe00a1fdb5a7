"""Unit tests for the unit-square homography."""

import cv2
import numpy as np
import pytest

from src.common.types import Point2D, Quadrilateral
from src.rectification.errors import DegenerateQuadrilateralError
from src.rectification.homography import (
    UNIT_SQUARE,
    apply_homography,
    solve_homography,
    transform_point,
    unit_square_to_quad,
)


class TestSolveHomography:
    def test_maps_all_four_correspondences(self, skewed_quad):
        matrix = unit_square_to_quad(skewed_quad)
        x, y = apply_homography(matrix, UNIT_SQUARE[:, 0], UNIT_SQUARE[:, 1])

        np.testing.assert_allclose(
            np.stack([x, y], axis=1), skewed_quad.to_numpy(), atol=1e-9
        )

    def test_normalized_scale(self, skewed_quad):
        matrix = unit_square_to_quad(skewed_quad)

        assert matrix.shape == (3, 3)
        assert matrix[2, 2] == 1.0

    def test_axis_aligned_is_affine(self, axis_aligned_quad):
        matrix = unit_square_to_quad(axis_aligned_quad)

        np.testing.assert_allclose(
            matrix,
            [[100.0, 0.0, 10.0], [0.0, 50.0, 10.0], [0.0, 0.0, 1.0]],
            atol=1e-9,
        )

    def test_matches_opencv(self, skewed_quad):
        ours = unit_square_to_quad(skewed_quad)
        reference = cv2.getPerspectiveTransform(
            UNIT_SQUARE.astype(np.float32), skewed_quad.to_numpy(np.float32)
        )

        np.testing.assert_allclose(ours, reference, rtol=1e-4, atol=1e-4)

    def test_singular_system_raises(self):
        with pytest.raises(DegenerateQuadrilateralError, match="singular"):
            solve_homography(UNIT_SQUARE, np.zeros((4, 2)))

    def test_collinear_target_not_invertible(self):
        quad = Quadrilateral.from_points([[0, 0], [10, 0], [20, 0], [30, 0]])

        with pytest.raises(DegenerateQuadrilateralError):
            unit_square_to_quad(quad)


class TestApplyHomography:
    def test_centre_of_square(self, axis_aligned_quad):
        matrix = unit_square_to_quad(axis_aligned_quad)

        centre = transform_point(matrix, Point2D(x=0.5, y=0.5))

        assert centre.to_tuple() == pytest.approx((60.0, 35.0))

    def test_broadcasting(self, skewed_quad):
        matrix = unit_square_to_quad(skewed_quad)
        s = np.linspace(0, 1, 5)[np.newaxis, :]
        t = np.linspace(0, 1, 3)[:, np.newaxis]

        x, y = apply_homography(matrix, s, t)

        assert x.shape == (3, 5)
        assert y.shape == (3, 5)

    def test_straight_lines_stay_straight(self, skewed_quad):
        matrix = unit_square_to_quad(skewed_quad)
        s = np.linspace(0, 1, 11)
        x, y = apply_homography(matrix, s, np.full_like(s, 0.3))

        # All mapped points of one row lie on a single source line
        dx, dy = x[-1] - x[0], y[-1] - y[0]
        cross = dx * (y - y[0]) - dy * (x - x[0])
        np.testing.assert_allclose(cross, 0.0, atol=1e-6)
