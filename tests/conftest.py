"""
Pytest Configuration and Shared Fixtures

Synthetic, OpenCV-drawn camera frames shared by all test modules. Cards are
light, textured rectangles on a dark background so that both the contour
detector and the sharpness metric have something real to measure.
"""

import cv2
import numpy as np
import pytest

FRAME_WIDTH = 1000
FRAME_HEIGHT = 700

# Card corners in the 1000x700 frame (aspect 1.6, ~37% of the frame)
CARD_TL = (180, 150)
CARD_BR = (820, 550)


def draw_card(image, top_left, bottom_right):
    """Draw a textured ID-card-like rectangle in place."""
    x0, y0 = top_left
    x1, y1 = bottom_right
    w, h = x1 - x0, y1 - y0
    scale = w / 640.0

    cv2.rectangle(image, (x0, y0), (x1, y1), (225, 225, 225), thickness=-1)

    # Photo box
    px0, py0 = x0 + int(30 * scale), y0 + int(70 * scale)
    cv2.rectangle(
        image,
        (px0, py0),
        (px0 + int(150 * scale), py0 + int(190 * scale)),
        (90, 90, 90),
        thickness=-1,
    )

    # Header bar
    cv2.rectangle(
        image,
        (x0 + int(20 * scale), y0 + int(15 * scale)),
        (x1 - int(20 * scale), y0 + int(45 * scale)),
        (60, 60, 140),
        thickness=-1,
    )

    lines = ["REPUBLIC ID CARD", "NAME: JUAN DELA CRUZ", "DOB: 1990-01-01", "NO: 1234-5678-90"]
    for i, text in enumerate(lines):
        cv2.putText(
            image,
            text,
            (x0 + int(210 * scale), y0 + int((110 + i * 60) * scale)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.8 * scale,
            (20, 20, 20),
            max(1, int(round(2 * scale))),
        )
    return image


def make_card_frame(width=FRAME_WIDTH, height=FRAME_HEIGHT, top_left=CARD_TL, bottom_right=CARD_BR):
    image = np.full((height, width, 3), 30, dtype=np.uint8)
    return draw_card(image, top_left, bottom_right)


@pytest.fixture
def card_image():
    """1000x700 BGR frame with a centred, axis-aligned card."""
    return make_card_frame()


@pytest.fixture
def large_card_image():
    """2000x1400 frame with the same card scaled by 2 (forces downscaling)."""
    return make_card_frame(
        width=FRAME_WIDTH * 2,
        height=FRAME_HEIGHT * 2,
        top_left=(CARD_TL[0] * 2, CARD_TL[1] * 2),
        bottom_right=(CARD_BR[0] * 2, CARD_BR[1] * 2),
    )


@pytest.fixture
def small_card_image():
    """Card that passes the acceptance filters but is too small to be selected."""
    return make_card_frame(top_left=(300, 225), bottom_right=(700, 475))


@pytest.fixture
def blank_image():
    """Uniform gray frame: no edges, zero sharpness."""
    return np.full((FRAME_HEIGHT, FRAME_WIDTH, 3), 128, dtype=np.uint8)


@pytest.fixture
def striped_image():
    """Full-width horizontal stripes: sharp, but no card-shaped contour."""
    image = np.full((FRAME_HEIGHT, FRAME_WIDTH, 3), 40, dtype=np.uint8)
    for y in range(0, FRAME_HEIGHT, 20):
        image[y : y + 10, :] = 220
    return image


@pytest.fixture
def sample_quadrilateral_points():
    """Fixture providing sample 4-corner points for testing."""
    return np.array(
        [
            [300, 150],  # Top-right area
            [100, 200],  # Top-left area
            [320, 400],  # Bottom-right area
            [80, 380],  # Bottom-left area
        ],
        dtype=np.float32,
    )
