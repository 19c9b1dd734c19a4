"""
Sharpness assessment for rectified card images.

Example:
    >>> from src.sharpness import SharpnessEvaluator
    >>> evaluator = SharpnessEvaluator()
    >>> score = evaluator.score(image)
"""

from src.sharpness.sharpness_assessor import (
    SharpnessEvaluator,
    assess_sharpness,
    calculate_sharpness,
    meets_threshold,
)

__all__ = [
    "SharpnessEvaluator",
    "assess_sharpness",
    "calculate_sharpness",
    "meets_threshold",
]
