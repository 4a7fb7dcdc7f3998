"""Tests for environment-driven settings."""

from __future__ import annotations

import pydantic
import pytest

from app.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.timezone == "UTC"
    assert settings.recheck_every_update is True
    assert settings.at_risk_battery_percent == 20
    assert "http://localhost:5173" in settings.cors_origins


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("EVFLEET_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("EVFLEET_RECHECK_EVERY_UPDATE", "false")
    monkeypatch.setenv("EVFLEET_AT_RISK_BATTERY_PERCENT", "35")

    settings = Settings()
    assert settings.timezone == "Europe/Berlin"
    assert settings.tzinfo is not None
    assert settings.recheck_every_update is False
    assert settings.at_risk_battery_percent == 35


def test_unknown_timezone_rejected():
    with pytest.raises(pydantic.ValidationError):
        Settings(timezone="Mars/Olympus_Mons")
