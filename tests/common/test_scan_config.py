"""
Unit tests for config_loader module.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from src.common.config_loader import (
    CardScanConfig,
    DetectionConfig,
    get_default_config,
    load_config,
)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default_config(self):
        """Bundled config.yaml matches the documented defaults."""
        config = load_config()

        assert isinstance(config, CardScanConfig)
        assert config.detection.max_downscale_dimension == 1000
        assert config.detection.canny_low == 50
        assert config.detection.canny_high == 150
        assert config.presence.max_downscale_dimension == 640
        assert config.selection.target_card_aspect_ratio == 1.6
        assert config.rectification.canonical_output_size.width == 1000
        assert config.rectification.canonical_output_size.height == 600
        assert config.sharpness.crop_min_sharpness == 3.5
        assert config.scan.number_of_attempts == 3
        assert config.scan.inter_attempt_delay_ms == 150
        assert config.scan.min_sharpness == 6.5
        assert config.auto_capture.interval_ms == 500
        assert config.auto_capture.consecutive_frame_threshold == 3
        assert config.auto_capture.confidence_threshold == 0.6

    def test_bundled_file_matches_model_defaults(self):
        assert load_config() == CardScanConfig()

    def test_partial_config_keeps_defaults(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.dump({"scan": {"number_of_attempts": 5}}))

        config = load_config(path)

        assert config.scan.number_of_attempts == 5
        assert config.scan.min_sharpness == 6.5
        assert config.detection == DetectionConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(path) == CardScanConfig()

    def test_missing_file_raises_error(self):
        with pytest.raises(FileNotFoundError):
            load_config(Path("nonexistent_config.yaml"))

    def test_get_default_config(self):
        assert get_default_config().scan.number_of_attempts == 3


class TestValidation:
    """Cross-field validation of configuration sections."""

    def test_even_blur_kernel_rejected(self):
        with pytest.raises(ValidationError, match="odd"):
            DetectionConfig(blur_kernel_size=4)

    def test_canny_order_rejected(self):
        with pytest.raises(ValidationError, match="canny_low"):
            DetectionConfig(canny_low=200, canny_high=100)

    def test_area_order_rejected(self):
        with pytest.raises(ValidationError, match="min_area_ratio"):
            DetectionConfig(min_area_ratio=0.9, max_area_ratio=0.5)

    def test_invalid_yaml_value_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"scan": {"number_of_attempts": 0}}))

        with pytest.raises(ValidationError):
            load_config(path)
