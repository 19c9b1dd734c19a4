"""
Card detection: contour-based quad finding, selection and presence scoring.

Example:
    >>> from src.card_detection import CardDetector, QuadSelector
    >>> detector = CardDetector()
    >>> selector = QuadSelector(detector=detector)
    >>> best = selector.select_best(detector.detect(frame))
"""

from src.card_detection.detector import CardDetector, DetectionPass, downscale
from src.card_detection.geometric_filters import (
    bbox_aspect_ratio,
    center_distance,
    check_card_geometry,
)
from src.card_detection.selector import (
    NO_CARD_SHAPE_REASON,
    QuadSelector,
    aspect_score,
    presence_confidence,
    score_candidate,
)

__all__ = [
    "CardDetector",
    "DetectionPass",
    "QuadSelector",
    "NO_CARD_SHAPE_REASON",
    "aspect_score",
    "bbox_aspect_ratio",
    "center_distance",
    "check_card_geometry",
    "downscale",
    "presence_confidence",
    "score_candidate",
]
