"""
Sharpness Assessment - Laplacian Focus Metric.

Scores how well-focused an image is with a no-reference metric: the
standard deviation of the Laplacian response. Sharp card edges and print
give a wide spread of second-derivative values; defocus or motion blur
flattens them towards zero.

The evaluator only reports the number. Acceptance thresholds belong to the
caller, since the per-crop gate and the whole-scan gate differ.
"""

import logging
import math
from typing import Tuple

import cv2
import numpy as np

from src.common.types import to_grayscale

logger = logging.getLogger(__name__)


def calculate_sharpness(image: np.ndarray) -> float:
    """
    Calculate sharpness as the standard deviation of the Laplacian.

    Args:
        image: Input image (grayscale, BGR or BGRA). Not modified.

    Returns:
        Sharpness score. Higher is sharper. May be non-finite for
        degenerate input; callers must check with ``meets_threshold``.

    Raises:
        ValueError: If image is None or empty.

    Theory:
        - Laplacian kernel: [[0, 1, 0], [1, -4, 1], [0, 1, 0]]
        - CV_64F keeps negative responses and avoids overflow
        - The spread (std) of the response grows with edge strength

    Example:
        >>> image = cv2.imread("card.jpg")
        >>> score = calculate_sharpness(image)
        >>> print(f"Sharpness: {score:.1f}")
        Sharpness: 23.4
    """
    if image is None or image.size == 0:
        raise ValueError("Invalid image: image is None or empty")

    gray = to_grayscale(image)

    laplacian = cv2.Laplacian(gray, cv2.CV_64F)
    _, stddev = cv2.meanStdDev(laplacian)
    sharpness = float(stddev[0][0])

    logger.debug(f"Sharpness (Laplacian std): {sharpness:.2f}")

    return sharpness


def meets_threshold(sharpness: float, min_sharpness: float) -> bool:
    """
    Check a sharpness score against a minimum.

    Non-finite scores never pass.
    """
    return math.isfinite(sharpness) and sharpness >= min_sharpness


def assess_sharpness(image: np.ndarray, min_sharpness: float) -> Tuple[bool, float]:
    """
    Score an image and check it against a minimum sharpness.

    Args:
        image: Input image (grayscale, BGR or BGRA).
        min_sharpness: Minimum acceptable score for this call site.

    Returns:
        Tuple of (passes_check, sharpness).
    """
    sharpness = calculate_sharpness(image)
    passes = meets_threshold(sharpness, min_sharpness)

    if passes:
        logger.info(
            f"Sharpness check PASSED: {sharpness:.2f} (>= {min_sharpness:.2f})"
        )
    else:
        logger.warning(
            f"Sharpness check FAILED: {sharpness:.2f} (< {min_sharpness:.2f}) - "
            f"Image is blurry or degenerate"
        )

    return passes, sharpness


class SharpnessEvaluator:
    """
    Stateless focus scorer.

    Every call recomputes the score from the pixels it is given; nothing is
    cached between images.

    Example:
        >>> evaluator = SharpnessEvaluator()
        >>> score = evaluator.score(rectified)
        >>> evaluator.meets(score, 3.5)
        True
    """

    def score(self, image: np.ndarray) -> float:
        """Return the Laplacian-std sharpness of ``image``."""
        return calculate_sharpness(image)

    def meets(self, sharpness: float, min_sharpness: float) -> bool:
        """Return True when ``sharpness`` is finite and at least ``min_sharpness``."""
        return meets_threshold(sharpness, min_sharpness)
