"""
Configuration settings for the EV fleet operations service.

Values are read from the environment (prefix ``EVFLEET_``) or a ``.env`` file.
"""

from __future__ import annotations

import datetime

from dateutil import tz
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="EVFLEET_",
        env_file=".env",
        case_sensitive=False,
    )

    # Application
    app_name: str = "EV Fleet Ops"
    log_level: str = "INFO"
    seed_demo_data: bool = False

    # Scheduling
    timezone: str = "UTC"
    recheck_every_update: bool = True
    at_risk_battery_percent: float = 20

    # HTTP
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://localhost:8081",
    ]

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if tz.gettz(value) is None:
            raise ValueError(f"unknown timezone: {value}")
        return value

    @property
    def tzinfo(self) -> datetime.tzinfo:
        """The configured timezone, used to compute the local "today" window."""
        return tz.gettz(self.timezone)


settings = Settings()
