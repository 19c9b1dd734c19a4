"""
Contour-based ID card detector.

Finds quadrilateral, card-shaped contours in a frame. Detection runs on a
uniformly downscaled working copy; every candidate carries the scale factor
so rectification can map it back onto the full-resolution frame.

Pipeline:
1. Downscale (longest side <= max_downscale_dimension, INTER_AREA)
2. Grayscale + Gaussian blur
3. Canny edges
4. Contours + Douglas-Peucker approximation
5. Geometric acceptance filters
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import numpy as np

from src.card_detection.geometric_filters import check_card_geometry
from src.common.config_loader import DetectionConfig, PresenceConfig
from src.common.types import BBox, Frame, QuadCandidate, to_grayscale

logger = logging.getLogger(__name__)


def downscale(image: np.ndarray, max_dimension: int) -> Tuple[np.ndarray, float]:
    """
    Shrink an image so neither side exceeds ``max_dimension``.

    The same factor is applied to both axes. Images already small enough
    are returned as-is with a factor of 1.0.

    Args:
        image: Source image. Not modified.
        max_dimension: Maximum width and height of the result.

    Returns:
        Tuple of (working_image, scale_factor) where
        scale_factor = working size / original size.
    """
    h, w = image.shape[:2]
    if w <= max_dimension and h <= max_dimension:
        return image, 1.0

    scale = min(max_dimension / w, max_dimension / h)
    dsize = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    working = cv2.resize(image, dsize, interpolation=cv2.INTER_AREA)

    logger.debug(f"Downscaled {w}x{h} -> {dsize[0]}x{dsize[1]} (scale={scale:.4f})")
    return working, scale


@dataclass
class DetectionPass:
    """
    Candidates from one detection run plus the working-space geometry.

    Attributes:
        candidates: Accepted quads, in contour order.
        working_width: Width of the downscaled working copy.
        working_height: Height of the downscaled working copy.
        scale_factor: Working size / original size.
    """

    candidates: List[QuadCandidate] = field(default_factory=list)
    working_width: int = 0
    working_height: int = 0
    scale_factor: float = 1.0

    @property
    def working_area(self) -> int:
        return self.working_width * self.working_height


class CardDetector:
    """
    Finds card-shaped quadrilaterals in camera frames.

    ``detect`` is the strict path used before cropping.
    ``detect_presence_candidates`` is a cheaper, looser pass for the
    auto-capture presence check.

    Example:
        >>> detector = CardDetector()
        >>> candidates = detector.detect(Frame(data=cv2.imread("card.jpg")))
        >>> len(candidates)
        1
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        presence_config: Optional[PresenceConfig] = None,
    ):
        self.config = config if config is not None else DetectionConfig()
        self.presence_config = (
            presence_config if presence_config is not None else PresenceConfig()
        )

    def downscale(self, image: np.ndarray) -> Tuple[np.ndarray, float]:
        """Working copy for strict detection, with its scale factor."""
        return downscale(image, self.config.max_downscale_dimension)

    def detect(self, frame: Frame) -> List[QuadCandidate]:
        """
        Find all qualifying card quads in a frame.

        Returns:
            Zero or more candidates in working-space coordinates. An empty
            list is the normal "no card" outcome.
        """
        return self.run(frame).candidates

    def run(self, frame: Frame) -> DetectionPass:
        """Strict detection, returning candidates with the working geometry."""
        working, scale = self.downscale(frame.data)
        work_h, work_w = working.shape[:2]

        edges = self._edge_map(working)
        contours, _ = cv2.findContours(
            edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
        )

        candidates: List[QuadCandidate] = []
        for contour in contours:
            approx = self._approximate(contour)
            is_valid, why = check_card_geometry(approx, work_w, work_h, self.config)
            if not is_valid:
                logger.debug(f"Contour rejected: {why}")
                continue
            candidates.append(self._to_candidate(approx, scale))

        logger.info(
            f"Card detection: {len(contours)} contours -> {len(candidates)} candidates "
            f"(working {work_w}x{work_h})"
        )
        return DetectionPass(
            candidates=candidates,
            working_width=work_w,
            working_height=work_h,
            scale_factor=scale,
        )

    def detect_presence_candidates(self, frame: Frame) -> DetectionPass:
        """
        Loose detection for presence checks.

        Smaller working copy, every contour (RETR_LIST) rather than only
        external ones, and only the 4-vertex and area-ratio tests.
        """
        cfg = self.presence_config
        working, scale = downscale(frame.data, cfg.max_downscale_dimension)
        work_h, work_w = working.shape[:2]
        frame_area = float(work_w * work_h)

        edges = self._edge_map(working)
        contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

        candidates: List[QuadCandidate] = []
        for contour in contours:
            approx = self._approximate(contour)
            if len(approx) != 4:
                continue
            area_ratio = float(cv2.contourArea(approx)) / frame_area
            if cfg.min_area_ratio < area_ratio < cfg.max_area_ratio:
                candidates.append(self._to_candidate(approx, scale))

        return DetectionPass(
            candidates=candidates,
            working_width=work_w,
            working_height=work_h,
            scale_factor=scale,
        )

    def _edge_map(self, working: np.ndarray) -> np.ndarray:
        gray = to_grayscale(working)
        k = self.config.blur_kernel_size
        blurred = cv2.GaussianBlur(gray, (k, k), 0)
        return cv2.Canny(blurred, self.config.canny_low, self.config.canny_high)

    def _approximate(self, contour: np.ndarray) -> np.ndarray:
        peri = cv2.arcLength(contour, True)
        return cv2.approxPolyDP(contour, self.config.approx_epsilon_ratio * peri, True)

    @staticmethod
    def _to_candidate(approx: np.ndarray, scale: float) -> QuadCandidate:
        x, y, w, h = cv2.boundingRect(approx)
        return QuadCandidate(
            points=approx.reshape(4, 2).astype(np.float32),
            area=float(cv2.contourArea(approx)),
            bbox=BBox.from_xywh(x, y, w, h),
            scale_factor=scale,
        )
