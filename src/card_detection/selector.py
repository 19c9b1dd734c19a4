"""
Candidate selection and card-presence scoring.

Two independent contracts live here:

- ``select_best``: pick one quad from the strict detector's candidates,
  preferring large quads close to the ID-1 aspect ratio.
- ``check_presence``: a fast "is a card probably in view" signal for the
  auto-capture loop, scored from how much of the frame the largest loose
  candidate covers.
"""

import logging
from typing import Optional, Sequence

from src.card_detection.detector import CardDetector
from src.common.config_loader import SelectionConfig
from src.common.types import DetectionResult, Frame, QuadCandidate

logger = logging.getLogger(__name__)

NO_CARD_SHAPE_REASON = "No rectangular card shape found"


def aspect_score(aspect_ratio: float, target_aspect: float) -> float:
    """Closeness of ``aspect_ratio`` to ``target_aspect``, 1.0 when equal."""
    return 1.0 / (1.0 + abs(aspect_ratio - target_aspect))


def score_candidate(quad: QuadCandidate, target_aspect: float) -> float:
    """Area weighted by aspect closeness."""
    return quad.area * aspect_score(quad.aspect_ratio, target_aspect)


def presence_confidence(area_ratio: float) -> float:
    """
    Map candidate area coverage to a presence confidence in [0, 1].

    Bands:
    - [0.25, 0.70]: 0.8 + 0.3 * r (card held at a comfortable distance)
    - (0.15, 0.25) or above 0.70: 0.5 + 0.5 * r
    - 0.15 and below: 3 * r

    Args:
        area_ratio: Candidate area divided by working-frame area.

    Returns:
        Confidence capped at 1.0; 0.0 for non-positive ratios.

    Example:
        >>> round(presence_confidence(0.40), 2)
        0.92
        >>> round(presence_confidence(0.10), 2)
        0.3
    """
    if area_ratio <= 0:
        return 0.0

    if 0.25 <= area_ratio <= 0.70:
        confidence = 0.8 + 0.3 * area_ratio
    elif area_ratio > 0.15:
        confidence = 0.5 + 0.5 * area_ratio
    else:
        confidence = 3.0 * area_ratio

    return min(confidence, 1.0)


class QuadSelector:
    """
    Chooses the card quad to rectify and answers presence queries.

    Args:
        config: Ranking and coverage settings.
        detector: Detector used by ``check_presence``. A default detector is
            created when omitted.

    Example:
        >>> selector = QuadSelector()
        >>> best = selector.select_best(detector.detect(frame))
        >>> presence = selector.check_presence(frame)
        >>> presence.detected
        True
    """

    def __init__(
        self,
        config: Optional[SelectionConfig] = None,
        detector: Optional[CardDetector] = None,
    ):
        self.config = config if config is not None else SelectionConfig()
        self.detector = detector if detector is not None else CardDetector()

    def select_best(
        self,
        candidates: Sequence[QuadCandidate],
        target_aspect: Optional[float] = None,
    ) -> Optional[QuadCandidate]:
        """
        Pick the highest scoring candidate.

        Ties keep the earliest candidate; a later one must score strictly
        higher to win.

        Args:
            candidates: Quads from ``CardDetector.detect``.
            target_aspect: Preferred long/short ratio. Defaults to
                ``target_card_aspect_ratio`` from the config.

        Returns:
            The best candidate, or None when ``candidates`` is empty.
        """
        if target_aspect is None:
            target_aspect = self.config.target_card_aspect_ratio

        best: Optional[QuadCandidate] = None
        best_score = float("-inf")
        for quad in candidates:
            score = score_candidate(quad, target_aspect)
            if score > best_score:
                best, best_score = quad, score

        if best is not None:
            logger.debug(
                f"Selected quad area={best.area:.0f} aspect={best.aspect_ratio:.2f} "
                f"score={best_score:.1f} from {len(candidates)} candidates"
            )
        return best

    def passes_coverage(
        self, quad: QuadCandidate, working_width: int, working_height: int
    ) -> bool:
        """
        Check the selected quad spans enough of the working frame.

        Small quads are usually a logo or photo inside the card rather than
        the card itself.
        """
        min_w = working_width * self.config.min_selected_coverage_width
        min_h = working_height * self.config.min_selected_coverage_height
        covered = quad.bbox.width >= min_w and quad.bbox.height >= min_h

        if not covered:
            logger.info(
                f"Selected quad too small: {quad.bbox.width}x{quad.bbox.height} "
                f"(need >= {min_w:.0f}x{min_h:.0f})"
            )
        return covered

    def check_presence(self, frame: Frame) -> DetectionResult:
        """
        Estimate whether a card is in view.

        Never raises: failures are reported as ``detected=False`` with the
        error text in ``reason``.

        Args:
            frame: Live camera frame.

        Returns:
            DetectionResult scored from the largest loose candidate.
        """
        try:
            detection = self.detector.detect_presence_candidates(frame)
        except Exception as e:
            logger.error(f"Presence check failed: {e}")
            return DetectionResult(detected=False, confidence=0.0, area=0.0, reason=str(e))

        if not detection.candidates or detection.working_area == 0:
            return DetectionResult(
                detected=False, confidence=0.0, area=0.0, reason=NO_CARD_SHAPE_REASON
            )

        largest = max(detection.candidates, key=lambda q: q.area)
        area_ratio = largest.area / detection.working_area
        confidence = presence_confidence(area_ratio)
        detected = confidence > 0.5

        logger.debug(
            f"Presence: area_ratio={area_ratio:.3f} confidence={confidence:.2f} "
            f"detected={detected}"
        )
        return DetectionResult(
            detected=detected,
            confidence=confidence,
            area=largest.area,
            area_ratio=area_ratio,
        )
