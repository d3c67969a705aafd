"""
Tests for YAML configuration loading.
"""

import pytest
from pydantic import ValidationError

from clinicslots.config import AppConfig, DefaultsConfig, load_config


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.database_url == "sqlite:///clinicslots.db"
        assert config.source_timeout_seconds == 10.0
        assert config.max_range_days == 366
        assert config.defaults.slot_duration_minutes == 30
        assert config.defaults.get_working_hours().to_dict() == {"start": "09:00", "end": "17:00"}

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "database_url: sqlite:///other.db\n"
            "source_timeout_seconds: 2.5\n"
            "log_level: debug\n"
            "defaults:\n"
            "  slot_duration_minutes: 15\n"
            '  working_hours_start: "08:00"\n'
            '  working_hours_end: "12:00"\n',
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(config_file)

        assert config.database_url == "sqlite:///other.db"
        assert config.source_timeout_seconds == 2.5
        assert config.log_level == "DEBUG"
        assert config.defaults.slot_duration_minutes == 15
        assert config.defaults.get_working_hours().start == 480

    def test_empty_file_uses_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("", encoding="utf-8")

        assert AppConfig.load_from_yaml(config_file) == AppConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("defaults: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(config_file)

    def test_non_mapping_root(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(config_file)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"source_timeout_seconds": 0},
            {"max_range_days": 0},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            AppConfig(**overrides)

    def test_explicit_path_must_exist(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")


class TestDefaultsConfig:
    """Tests for DefaultsConfig validation."""

    @pytest.mark.parametrize("duration", [4, 481])
    def test_duration_bounds(self, duration):
        with pytest.raises(ValidationError):
            DefaultsConfig(slot_duration_minutes=duration)

    def test_bad_time_format(self):
        with pytest.raises(ValidationError):
            DefaultsConfig(working_hours_start="9:00")

    def test_hours_order(self):
        with pytest.raises(ValidationError, match="later than"):
            DefaultsConfig(working_hours_start="17:00", working_hours_end="09:00")
