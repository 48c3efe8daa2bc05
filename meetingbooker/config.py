"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import BookingWindow


class SlotConfig(BaseModel):
    """Layout of the generated time slots."""
    start_hour: int = 9
    end_hour: int = 17
    duration_minutes: int = 60
    availability_ratio: float = 0.7

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure slot duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("availability_ratio")
    @classmethod
    def validate_ratio(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"availability_ratio must be between 0 and 1, got {value}")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "SlotConfig":
        """Ensure the configured day opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def get_start_time(self) -> time:
        """Get start time as time object."""
        return time(hour=self.start_hour, minute=0)

    def get_end_time(self) -> time:
        """Get end time as time object."""
        return time(hour=self.end_hour, minute=0)


class AppConfig(BaseModel):
    """Application configuration."""
    api_base_url: str = "https://api.warpcast.com/v2"
    api_key: Optional[str] = None
    timezone: str = "UTC"
    booking_window_days: int = 14
    auto_reset_seconds: float = 2.0
    slots: SlotConfig = Field(default_factory=SlotConfig)

    @field_validator("booking_window_days")
    @classmethod
    def validate_window(cls, value: int) -> int:
        if value < 1:
            raise ValueError("booking_window_days must be at least 1")
        return value

    @field_validator("auto_reset_seconds")
    @classmethod
    def validate_reset_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("auto_reset_seconds must not be negative")
        return value

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def get_booking_window(self) -> BookingWindow:
        """Get the booking window policy."""
        return BookingWindow(days=self.booking_window_days)

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

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """Load the config file if there is one, otherwise use defaults."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of meetingbooker/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
