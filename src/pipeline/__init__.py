"""
Crop pipeline: single-frame cropping and multi-attempt scans.

Example:
    >>> from src.pipeline import CardCropper, MultiAttemptSelector
    >>> scanner = MultiAttemptSelector(CardCropper())
    >>> result = scanner.scan(StillImageSource.from_file("id_card.jpg"))
"""

from src.pipeline.card_cropper import (
    NO_CARD_REASON,
    PROCESSING_ERROR_REASON,
    TOO_BLURRY_REASON,
    CardCropper,
)
from src.pipeline.multi_attempt import (
    CANCELLED_REASON,
    NO_FRAME_REASON,
    SCAN_TOO_BLURRY_REASON,
    MultiAttemptSelector,
)

__all__ = [
    "CardCropper",
    "MultiAttemptSelector",
    "CANCELLED_REASON",
    "NO_CARD_REASON",
    "NO_FRAME_REASON",
    "PROCESSING_ERROR_REASON",
    "SCAN_TOO_BLURRY_REASON",
    "TOO_BLURRY_REASON",
]
