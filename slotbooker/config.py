"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import OverlapMode, SlotSettings

TOKEN_ENV_VAR = "SLOTBOOKER_API_TOKEN"


class BusinessSettingsConfig(BaseModel):
    """Business settings that shape the bookable slots."""
    slot_duration: int = Field(default=15, ge=5, le=240)  # minutes
    buffer_time: int = Field(default=0, ge=0, le=240)  # minutes
    booking_lead_time: int = Field(default=0, ge=0, le=720)  # hours
    timezone: str = "UTC"
    overlap_mode: OverlapMode = OverlapMode.START_INSTANT
    apply_buffer: bool = False
    enforce_lead_time: bool = False
    ignore_cancelled: bool = False

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def to_slot_settings(self) -> SlotSettings:
        """Get the settings as the domain value object."""
        return SlotSettings(
            slot_duration=self.slot_duration,
            buffer_time=self.buffer_time,
            booking_lead_time=self.booking_lead_time,
            timezone=self.timezone,
            overlap_mode=self.overlap_mode,
            apply_buffer=self.apply_buffer,
            enforce_lead_time=self.enforce_lead_time,
            ignore_cancelled=self.ignore_cancelled,
        )


class ApiConfig(BaseModel):
    """Connection settings for the booking REST API."""
    base_url: str = "http://localhost:3001/api"
    token: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {value}")
        return value.rstrip("/")

    def resolve_token(self) -> Optional[str]:
        """Get the API token, preferring the environment over the file."""
        return os.environ.get(TOKEN_ENV_VAR) or self.token


class AppConfig(BaseModel):
    """Application configuration."""
    backend: Literal["api", "mock"] = "mock"
    api: ApiConfig = Field(default_factory=ApiConfig)
    settings: BusinessSettingsConfig = Field(default_factory=BusinessSettingsConfig)
    mock_data_file: Optional[Path] = None
    booking_days: int = Field(default=14, ge=1, le=60)

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

        config = cls(**data)

        # Relative data file paths are relative to the config file
        if config.mock_data_file is not None and not config.mock_data_file.is_absolute():
            config.mock_data_file = config_path.parent / config.mock_data_file

        return config


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
