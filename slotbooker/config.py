"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import TimeSlot


class StoreConfig(BaseModel):
    """Connection settings for the hosted bookings table."""
    url: str = ""
    api_key: str = ""
    table: str = "bookings"
    timeout_seconds: int = 10

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: int) -> int:
        """Ensure the request timeout is positive."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class SlotConfig(BaseModel):
    """One bookable window."""
    id: str
    label: str

    def to_time_slot(self) -> TimeSlot:
        return TimeSlot(id=self.id, label=self.label)


def _default_slots() -> List[SlotConfig]:
    return [
        SlotConfig(id="09-10", label="9:00 AM - 10:00 AM"),
        SlotConfig(id="10-11", label="10:00 AM - 11:00 AM"),
        SlotConfig(id="11-12", label="11:00 AM - 12:00 PM"),
        SlotConfig(id="14-15", label="2:00 PM - 3:00 PM"),
        SlotConfig(id="15-16", label="3:00 PM - 4:00 PM"),
        SlotConfig(id="16-17", label="4:00 PM - 5:00 PM"),
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    store: StoreConfig = Field(default_factory=StoreConfig)
    timezone: str = "Asia/Kolkata"
    email_domain: str = "jkkn.ac.in"
    contact_number_digits: int = 10
    closed_weekdays: List[int] = Field(default_factory=lambda: [6])  # Sunday
    time_slots: List[SlotConfig] = Field(default_factory=_default_slots)
    colleges: List[str] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("email_domain")
    @classmethod
    def validate_email_domain(cls, value: str) -> str:
        value = value.strip().lstrip("@")
        if not value:
            raise ValueError("email_domain must not be empty")
        return value

    @field_validator("contact_number_digits")
    @classmethod
    def validate_digits(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("contact_number_digits must be greater than zero")
        return value

    @field_validator("closed_weekdays")
    @classmethod
    def validate_closed_weekdays(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    @field_validator("time_slots")
    @classmethod
    def validate_time_slots(cls, value: List[SlotConfig]) -> List[SlotConfig]:
        """Ensure at least one slot exists and slot ids are unique."""
        if not value:
            raise ValueError("time_slots must contain at least one slot")
        seen_ids: set[str] = set()
        for slot in value:
            if slot.id in seen_ids:
                raise ValueError(f"Duplicate time slot id detected: {slot.id}")
            seen_ids.add(slot.id)
        return value

    def get_time_slots(self) -> List[TimeSlot]:
        return [slot.to_time_slot() for slot in self.time_slots]

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
