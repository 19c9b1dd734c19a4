"""
Geometric acceptance filters for card candidates.

Decides whether a 4-vertex contour approximation is plausibly an ID card
held in front of the camera: big enough, not the frame border, roughly
centred, and not absurdly elongated.
"""

import logging
import math
from typing import Optional, Tuple

import cv2
import numpy as np

from src.common.config_loader import DetectionConfig
from src.common.types import BBox

logger = logging.getLogger(__name__)


def center_distance(bbox: BBox, frame_width: int, frame_height: int) -> float:
    """
    Normalized distance between the bbox centre and the frame centre.

    Offsets are divided by the frame width and height respectively, so 0.0
    is dead centre and ~0.707 is a corner.

    Example:
        >>> bbox = BBox(x_min=100, y_min=100, x_max=300, y_max=200)
        >>> round(center_distance(bbox, 400, 300), 3)
        0.0
    """
    cx, cy = bbox.center
    dx = (cx - frame_width / 2.0) / frame_width
    dy = (cy - frame_height / 2.0) / frame_height
    return math.sqrt(dx * dx + dy * dy)


def bbox_aspect_ratio(bbox: BBox) -> float:
    """Long side over short side of the bbox (>= 1)."""
    w, h = bbox.width, bbox.height
    return w / h if w > h else h / w


def check_card_geometry(
    approx: np.ndarray,
    frame_width: int,
    frame_height: int,
    config: DetectionConfig,
) -> Tuple[bool, Optional[str]]:
    """
    Apply the card acceptance filters to one polygon approximation.

    Filters, cheapest first:
    1. Exactly 4 vertices
    2. Convex
    3. Area within [min_area_ratio, max_area_ratio] of the frame
    4. Bbox at least min_width_ratio wide and min_height_ratio tall
    5. Bbox not filling the whole frame in both dimensions
    6. Bbox centre within max_center_distance of the frame centre
    7. Bbox aspect ratio within [min_aspect_ratio, max_aspect_ratio]

    Args:
        approx: Output of cv2.approxPolyDP, shape (N, 1, 2).
        frame_width: Working frame width.
        frame_height: Working frame height.
        config: Detection thresholds.

    Returns:
        Tuple of (is_valid, rejection_description).
    """
    if len(approx) != 4:
        return False, f"{len(approx)} vertices"

    if not cv2.isContourConvex(approx):
        return False, "not convex"

    frame_area = float(frame_width * frame_height)
    area = float(cv2.contourArea(approx))
    if area < frame_area * config.min_area_ratio or area > frame_area * config.max_area_ratio:
        return False, f"area ratio {area / frame_area:.3f} out of range"

    x, y, w, h = cv2.boundingRect(approx)
    if w < frame_width * config.min_width_ratio or h < frame_height * config.min_height_ratio:
        return False, f"bbox {w}x{h} too small"

    if (
        w >= frame_width * config.full_frame_ratio
        and h >= frame_height * config.full_frame_ratio
    ):
        return False, "bbox spans the whole frame"

    bbox = BBox.from_xywh(x, y, w, h)
    distance = center_distance(bbox, frame_width, frame_height)
    if distance > config.max_center_distance:
        return False, f"off-centre by {distance:.3f}"

    aspect = bbox_aspect_ratio(bbox)
    if aspect < config.min_aspect_ratio or aspect > config.max_aspect_ratio:
        return False, f"aspect ratio {aspect:.2f} out of range"

    return True, None
