"""Configuration loader with Pydantic validation for the card capture pipeline.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values. Each pipeline stage
receives only its own section (e.g. ``CardDetector(config.detection)``).
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


class DetectionConfig(BaseModel):
    """Contour-based card detection configuration.

    Attributes:
        max_downscale_dimension: Longest side of the working copy used for
            detection. Larger is slower but finds smaller cards.
        blur_kernel_size: Gaussian blur kernel size (odd).
        canny_low: Lower hysteresis threshold for Canny.
        canny_high: Upper hysteresis threshold for Canny.
        approx_epsilon_ratio: Douglas-Peucker epsilon as a fraction of the
            contour perimeter.
        min_area_ratio: Minimum quad area as a fraction of the frame area.
        max_area_ratio: Maximum quad area as a fraction of the frame area.
        min_width_ratio: Minimum bbox width as a fraction of frame width.
        min_height_ratio: Minimum bbox height as a fraction of frame height.
        full_frame_ratio: A bbox at least this large in both dimensions is
            the frame border, not a card.
        max_center_distance: Maximum normalized distance between bbox centre
            and frame centre.
        min_aspect_ratio: Minimum long/short side ratio of the bbox.
        max_aspect_ratio: Maximum long/short side ratio of the bbox.
    """

    max_downscale_dimension: int = Field(default=1000, gt=0)
    blur_kernel_size: int = Field(default=5, gt=0)
    canny_low: float = Field(default=50.0, ge=0.0)
    canny_high: float = Field(default=150.0, gt=0.0)
    approx_epsilon_ratio: float = Field(default=0.02, gt=0.0, lt=1.0)
    min_area_ratio: float = Field(default=0.02, ge=0.0, le=1.0)
    max_area_ratio: float = Field(default=0.90, gt=0.0, le=1.0)
    min_width_ratio: float = Field(default=0.25, ge=0.0, le=1.0)
    min_height_ratio: float = Field(default=0.18, ge=0.0, le=1.0)
    full_frame_ratio: float = Field(default=0.95, gt=0.0, le=1.0)
    max_center_distance: float = Field(default=0.35, ge=0.0)
    min_aspect_ratio: float = Field(default=0.5, gt=0.0)
    max_aspect_ratio: float = Field(default=4.0, gt=0.0)

    @model_validator(mode="after")
    def _check_ranges(self) -> "DetectionConfig":
        if self.blur_kernel_size % 2 == 0:
            raise ValueError(
                f"blur_kernel_size must be odd, got {self.blur_kernel_size}"
            )
        if self.canny_low >= self.canny_high:
            raise ValueError(
                f"canny_low ({self.canny_low}) must be less than "
                f"canny_high ({self.canny_high})"
            )
        if self.min_area_ratio >= self.max_area_ratio:
            raise ValueError(
                f"min_area_ratio ({self.min_area_ratio}) must be less than "
                f"max_area_ratio ({self.max_area_ratio})"
            )
        if self.min_aspect_ratio >= self.max_aspect_ratio:
            raise ValueError(
                f"min_aspect_ratio ({self.min_aspect_ratio}) must be less than "
                f"max_aspect_ratio ({self.max_aspect_ratio})"
            )
        return self


class PresenceConfig(BaseModel):
    """Cheap presence check used by auto-capture.

    Attributes:
        max_downscale_dimension: Longest side of the working copy.
        min_area_ratio: Candidates must cover more than this fraction.
        max_area_ratio: Candidates must cover less than this fraction.
    """

    max_downscale_dimension: int = Field(default=640, gt=0)
    min_area_ratio: float = Field(default=0.10, ge=0.0, le=1.0)
    max_area_ratio: float = Field(default=0.90, gt=0.0, le=1.0)


class SelectionConfig(BaseModel):
    """Candidate ranking configuration.

    Attributes:
        target_card_aspect_ratio: Preferred long/short ratio (ID-1 is ~1.586).
        min_selected_coverage_width: The chosen quad must span at least this
            fraction of the frame width, else the fallback crop is used.
        min_selected_coverage_height: Same, for the frame height.
    """

    target_card_aspect_ratio: float = Field(default=1.6, gt=0.0)
    min_selected_coverage_width: float = Field(default=0.5, ge=0.0, le=1.0)
    min_selected_coverage_height: float = Field(default=0.35, ge=0.0, le=1.0)


class OutputSize(BaseModel):
    """Canonical output image size in pixels."""

    width: int = Field(default=1000, ge=2)
    height: int = Field(default=600, ge=2)


class RectificationConfig(BaseModel):
    """Perspective rectification configuration.

    Attributes:
        canonical_output_size: Fixed size of every rectified card image.
        fallback_width_ratio: Width of the centred fallback crop.
        fallback_height_ratio: Height of the centred fallback crop.
    """

    canonical_output_size: OutputSize = Field(default_factory=OutputSize)
    fallback_width_ratio: float = Field(default=0.7, gt=0.0, le=1.0)
    fallback_height_ratio: float = Field(default=0.5, gt=0.0, le=1.0)


class SharpnessConfig(BaseModel):
    """Sharpness gate applied to each single-frame crop."""

    crop_min_sharpness: float = Field(default=3.5, ge=0.0)


class ScanConfig(BaseModel):
    """Multi-attempt scan configuration.

    Attributes:
        number_of_attempts: Frames captured per scan.
        inter_attempt_delay_ms: Pause between captures.
        pre_scan_delay_ms: Pause before the first capture so the operator
            can steady the card. Zero disables it.
        min_sharpness: Sharpness required of the chosen crop. Stricter than
            the per-crop gate on purpose; tune per call site.
    """

    number_of_attempts: int = Field(default=3, ge=1)
    inter_attempt_delay_ms: int = Field(default=150, ge=0)
    pre_scan_delay_ms: int = Field(default=0, ge=0)
    min_sharpness: float = Field(default=6.5, ge=0.0)


class AutoCaptureConfig(BaseModel):
    """Auto-capture watch loop configuration.

    Attributes:
        interval_ms: Time between presence checks.
        consecutive_frame_threshold: Good frames in a row before capturing.
        confidence_threshold: Presence confidence a frame must exceed.
    """

    interval_ms: int = Field(default=500, gt=0)
    consecutive_frame_threshold: int = Field(default=3, ge=1)
    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


class CardScanConfig(BaseModel):
    """Complete card capture pipeline configuration."""

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    rectification: RectificationConfig = Field(default_factory=RectificationConfig)
    sharpness: SharpnessConfig = Field(default_factory=SharpnessConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    auto_capture: AutoCaptureConfig = Field(default_factory=AutoCaptureConfig)


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> CardScanConfig:
    """Load and validate configuration from YAML file.

    Sections missing from the file keep their defaults.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Validated CardScanConfig object.

    Raises:
        FileNotFoundError: If config file does not exist.
        yaml.YAMLError: If YAML parsing fails.
        pydantic.ValidationError: If configuration validation fails.

    Example:
        >>> config = load_config(Path("src/common/config.yaml"))
        >>> print(config.scan.number_of_attempts)
        3
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.debug(f"Loading card scan config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    config = CardScanConfig(**config_dict)
    logger.info(f"Loaded card scan configuration from {config_path.name}")
    return config


def get_default_config() -> CardScanConfig:
    """Get default configuration from the bundled config.yaml file.

    Falls back to the model defaults if the bundled file is missing.
    """
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return CardScanConfig()
