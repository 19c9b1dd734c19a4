"""
Unit tests for image_rectification module.

Tests point canonicalization, perspective warping, the centred fallback
crop and the working-space to full-resolution mapping.
"""

import itertools

import numpy as np
import pytest

from src.common.config_loader import OutputSize, RectificationConfig
from src.common.types import BBox, Frame, QuadCandidate
from src.rectification.image_rectification import (
    PerspectiveRectifier,
    crop_and_resize,
    fallback_rect,
    order_points,
    warp_to_rectangle,
)


def gradient_image(width=1000, height=600):
    """Image whose pixel values encode their coordinates."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    b = np.tile(xs, (height, 1))
    g = np.tile(ys[:, None], (1, width))
    r = np.full((height, width), 128, dtype=np.float32)
    return np.dstack([b, g, r]).astype(np.uint8)


class TestOrderPoints:
    """Test suite for order_points function."""

    def test_order_points_basic(self, sample_quadrilateral_points):
        ordered = order_points(sample_quadrilateral_points)

        np.testing.assert_array_equal(
            ordered, [[100, 200], [300, 150], [320, 400], [80, 380]]
        )

    def test_order_invariant_under_permutation(self, sample_quadrilateral_points):
        expected = order_points(sample_quadrilateral_points)

        for perm in itertools.permutations(range(4)):
            np.testing.assert_array_equal(
                order_points(sample_quadrilateral_points[list(perm)]), expected
            )

    def test_order_points_list_input(self):
        ordered = order_points([[300, 150], [100, 200], [320, 400], [80, 380]])

        assert isinstance(ordered, np.ndarray)
        assert ordered.dtype == np.float32

    def test_order_points_invalid_count(self):
        with pytest.raises(ValueError, match="Expected exactly 4 points"):
            order_points(np.array([[100, 200], [300, 150]]))

    def test_diamond_is_degenerate(self):
        # Rotated 45 degrees: TR and BR share the largest x - y
        diamond = np.array([[200, 100], [300, 200], [200, 300], [100, 200]])

        with pytest.raises(ValueError, match="degenerate"):
            order_points(diamond)


class TestFallbackRect:
    """Tests for the centred fallback rectangle."""

    def test_default_proportions(self):
        bbox = fallback_rect(1000, 700)

        assert bbox.to_tuple() == (150, 175, 850, 525)

    def test_custom_ratios(self):
        bbox = fallback_rect(200, 100, width_ratio=0.5, height_ratio=0.5)

        assert bbox.to_tuple() == (50, 25, 150, 75)


class TestWarpToRectangle:
    """Tests for warp_to_rectangle."""

    def test_identity_warp(self):
        image = gradient_image()
        corners = [[999, 599], [0, 0], [0, 599], [999, 0]]

        warped = warp_to_rectangle(image, corners, 1000, 600)

        assert warped.shape == image.shape
        diff = np.abs(warped.astype(np.int16) - image.astype(np.int16))
        assert diff.max() <= 1

    def test_output_size(self, card_image, sample_quadrilateral_points):
        warped = warp_to_rectangle(card_image, sample_quadrilateral_points, 400, 100)

        assert warped.shape == (100, 400, 3)


class TestCropAndResize:
    def test_clamps_and_resizes(self):
        image = gradient_image(200, 100)
        out = crop_and_resize(image, BBox(x_min=150, y_min=50, x_max=400, y_max=300), 60, 40)

        assert out.shape == (40, 60, 3)


class TestPerspectiveRectifier:
    """Tests for PerspectiveRectifier."""

    def test_fallback_when_no_quad(self, card_image):
        card = PerspectiveRectifier().rectify(Frame(data=card_image))

        assert card.shape == (600, 1000, 3)

    def test_output_size_independent_of_input(self, large_card_image):
        rectifier = PerspectiveRectifier()
        quad = QuadCandidate(
            points=np.array([[180, 150], [820, 150], [820, 550], [180, 550]], dtype=np.float32),
            area=256000.0,
            bbox=BBox(x_min=180, y_min=150, x_max=820, y_max=550),
            scale_factor=0.5,
        )

        card = rectifier.rectify(Frame(data=large_card_image), quad, 0.5)

        assert card.shape == (600, 1000, 3)

    def test_custom_output_size(self, card_image):
        config = RectificationConfig(canonical_output_size=OutputSize(width=500, height=300))
        card = PerspectiveRectifier(config).rectify(Frame(data=card_image))

        assert card.shape == (300, 500, 3)

    def test_scale_is_undone_before_warping(self):
        # Working-space quad at half scale covering the whole full-res image:
        # rectification must reproduce the original pixels.
        image = gradient_image()
        quad = QuadCandidate(
            points=np.array(
                [[0, 0], [499.5, 0], [499.5, 299.5], [0, 299.5]], dtype=np.float32
            ),
            area=149600.0,
            bbox=BBox(x_min=0, y_min=0, x_max=500, y_max=300),
            scale_factor=0.5,
        )

        card = PerspectiveRectifier().rectify(Frame(data=image), quad, 0.5)

        diff = np.abs(card.astype(np.int16) - image.astype(np.int16))
        assert diff.max() <= 1

    def test_mismatched_scale_raises(self, card_image):
        quad = QuadCandidate(
            points=np.array([[180, 150], [820, 150], [820, 550], [180, 550]], dtype=np.float32),
            area=256000.0,
            bbox=BBox(x_min=180, y_min=150, x_max=820, y_max=550),
            scale_factor=0.5,
        )

        with pytest.raises(ValueError, match="does not match"):
            PerspectiveRectifier().rectify(Frame(data=card_image), quad, 1.0)

    def test_non_positive_scale_raises(self, card_image):
        quad = QuadCandidate(
            points=np.array([[180, 150], [820, 150], [820, 550], [180, 550]], dtype=np.float32),
            area=256000.0,
            bbox=BBox(x_min=180, y_min=150, x_max=820, y_max=550),
        )

        with pytest.raises(ValueError, match="positive"):
            PerspectiveRectifier().rectify(Frame(data=card_image), quad, 0.0)

    def test_source_frame_unchanged(self, card_image):
        original = card_image.copy()
        PerspectiveRectifier().rectify(Frame(data=card_image))

        np.testing.assert_array_equal(card_image, original)
