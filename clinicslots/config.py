"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InvalidTimeFormat
from .domain.models import WorkingHours
from .domain.slot_calculator import MAX_SLOT_DURATION, MIN_SLOT_DURATION
from .domain.time_utils import parse_time


class DefaultsConfig(BaseModel):
    """Defaults applied when a request leaves them out."""
    slot_duration_minutes: int = 30
    working_hours_start: str = "09:00"
    working_hours_end: str = "17:00"

    @field_validator("slot_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure slot duration is inside the accepted bounds."""
        if not MIN_SLOT_DURATION <= value <= MAX_SLOT_DURATION:
            raise ValueError(
                f"slot_duration_minutes must be between {MIN_SLOT_DURATION} and {MAX_SLOT_DURATION}, got {value}"
            )
        return value

    @field_validator("working_hours_start", "working_hours_end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate HH:MM format."""
        try:
            parse_time(value)
        except InvalidTimeFormat as exc:
            raise ValueError(str(exc)) from exc
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DefaultsConfig":
        """Ensure the configured window opens before it closes."""
        if parse_time(self.working_hours_end) <= parse_time(self.working_hours_start):
            raise ValueError("working_hours_end must be later than working_hours_start")
        return self

    def get_working_hours(self) -> WorkingHours:
        return WorkingHours.from_strings(self.working_hours_start, self.working_hours_end)


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///clinicslots.db"
    source_timeout_seconds: float = 10.0
    max_range_days: int = 366
    log_level: str = "INFO"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("source_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("source_timeout_seconds must be greater than zero")
        return value

    @field_validator("max_range_days")
    @classmethod
    def validate_max_range(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_range_days must be at least 1")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the given or default config file, falling back to built-in defaults."""
    path = config_path or get_default_config_path()
    if config_path is None and not path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(path)
