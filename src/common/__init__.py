"""
Shared types and configuration for the ID-card capture pipeline.
"""

from src.common.config_loader import (
    AutoCaptureConfig,
    CardScanConfig,
    DetectionConfig,
    OutputSize,
    PresenceConfig,
    RectificationConfig,
    ScanConfig,
    SelectionConfig,
    SharpnessConfig,
    get_default_config,
    load_config,
)
from src.common.types import (
    CAMERA_UNAVAILABLE_MESSAGE,
    BBox,
    CaptureAttempt,
    CropResult,
    DetectionResult,
    Frame,
    QuadCandidate,
    RejectionReason,
    to_grayscale,
)

__all__ = [
    # Types
    "BBox",
    "CaptureAttempt",
    "CropResult",
    "DetectionResult",
    "Frame",
    "QuadCandidate",
    "RejectionReason",
    "CAMERA_UNAVAILABLE_MESSAGE",
    "to_grayscale",
    # Config
    "CardScanConfig",
    "DetectionConfig",
    "PresenceConfig",
    "SelectionConfig",
    "RectificationConfig",
    "OutputSize",
    "SharpnessConfig",
    "ScanConfig",
    "AutoCaptureConfig",
    "load_config",
    "get_default_config",
]
