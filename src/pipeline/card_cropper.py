"""
Single-frame card crop pipeline.

Stages:
1. Card detection (on a downscaled working copy)
2. Candidate selection + coverage gate
3. Perspective rectification (against the full-resolution frame)
4. Sharpness check

Every outcome yields an image: the canonical crop when it is sharp, the
original frame otherwise. Errors inside the stages are reported in the
result, never raised.
"""

import logging
from pathlib import Path
from typing import Optional

from src.card_detection.detector import CardDetector
from src.card_detection.selector import QuadSelector
from src.common.config_loader import CardScanConfig, load_config
from src.common.types import CropResult, Frame, RejectionReason
from src.rectification.image_rectification import PerspectiveRectifier
from src.sharpness.sharpness_assessor import SharpnessEvaluator

logger = logging.getLogger(__name__)

TOO_BLURRY_REASON = "Card too blurry or invalid crop – using original image"
NO_CARD_REASON = "No card detected – using original image"
PROCESSING_ERROR_REASON = "OpenCV error, using original image"


class CardCropper:
    """
    Turns one camera frame into a canonical card image.

    Example:
        >>> cropper = CardCropper()
        >>> result = cropper.crop(Frame(data=cv2.imread("id_card.jpg")))
        >>> if result.is_pass():
        ...     cv2.imwrite("card.jpg", result.image)
    """

    def __init__(
        self,
        config: Optional[CardScanConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the cropper and its stages.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        if config is not None:
            self.config = config
        else:
            self.config = load_config(config_path) if config_path else load_config()

        self.detector = CardDetector(self.config.detection, self.config.presence)
        self.selector = QuadSelector(self.config.selection, detector=self.detector)
        self.rectifier = PerspectiveRectifier(self.config.rectification)
        self.evaluator = SharpnessEvaluator()

    @property
    def min_sharpness(self) -> float:
        return self.config.sharpness.crop_min_sharpness

    def crop(self, frame: Frame) -> CropResult:
        """
        Run detection, rectification and the sharpness gate on one frame.

        Args:
            frame: Full-resolution camera frame. Never modified.

        Returns:
            CropResult. ``image`` is always set: the canonical crop on
            success, a copy of the original frame otherwise.
        """
        try:
            # Stage 1: Card Detection
            detection = self.detector.run(frame)

            # Stage 2: Selection
            quad = self.selector.select_best(detection.candidates)
            if quad is not None and not self.selector.passes_coverage(
                quad, detection.working_width, detection.working_height
            ):
                quad = None

            if quad is None:
                logger.info("No usable card quad, using centred fallback crop")

            # Stage 3: Rectification
            rectified = self.rectifier.rectify(frame, quad, detection.scale_factor)

            # Stage 4: Sharpness
            sharpness = self.evaluator.score(rectified)
        except Exception as e:
            logger.error(f"Card crop failed: {e}")
            return CropResult(
                success=False,
                image=frame.data.copy(),
                reason=PROCESSING_ERROR_REASON,
                rejection=RejectionReason.PROCESSING_ERROR,
            )

        quad_detected = quad is not None

        if not self.evaluator.meets(sharpness, self.min_sharpness):
            rejection = (
                RejectionReason.TOO_BLURRY
                if quad_detected
                else RejectionReason.NO_CARD_DETECTED
            )
            reason = TOO_BLURRY_REASON if quad_detected else NO_CARD_REASON
            logger.warning(
                f"Crop REJECTED: sharpness {sharpness:.2f} < {self.min_sharpness:.2f} "
                f"({rejection.value})"
            )
            return CropResult(
                success=False,
                image=frame.data.copy(),
                sharpness=sharpness,
                reason=reason,
                rejection=rejection,
                quad_detected=quad_detected,
            )

        logger.info(
            f"Crop PASSED: sharpness={sharpness:.2f}, quad_detected={quad_detected}"
        )
        return CropResult(
            success=True,
            image=rectified,
            sharpness=sharpness,
            quad_detected=quad_detected,
        )
