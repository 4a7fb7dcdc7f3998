"""Domain models for fleet trips, drivers and vehicles."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

try:
    from enum import StrEnum
except ImportError:  # pragma: no cover - fallback for older Python runtimes

    class StrEnum(str, Enum):
        pass


class TripStatus(StrEnum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class EvStatus(StrEnum):
    IDLE = "IDLE"
    DRIVING = "DRIVING"
    CHARGING = "CHARGING"
    MAINTENANCE = "MAINTENANCE"


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so every stored instant is comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Driver(BaseModel):
    id: int | None = None
    name: str
    phone: str | None = None
    license_id: str | None = None
    active: bool = True


class Ev(BaseModel):
    id: int | None = None
    registration: str
    model: str | None = None
    battery_capacity_kwh: float = Field(default=0, ge=0)
    current_battery_percent: float = Field(default=100, ge=0, le=100)
    status: EvStatus = EvStatus.IDLE
    last_known_latitude: float | None = None
    last_known_longitude: float | None = None
    last_seen_at: datetime | None = None

    @field_validator("last_seen_at")
    @classmethod
    def _utc_last_seen(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class Trip(BaseModel):
    id: int | None = None
    ev_id: int
    driver_id: int
    start_time: datetime
    end_time: datetime
    status: TripStatus = TripStatus.PLANNED
    origin: str | None = None
    destination: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc_times(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Trip:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class TripRequest(BaseModel):
    """Create/update payload for a trip.

    Every field is optional here. Which fields the client actually sent is
    tracked by ``model_fields_set`` and drives partial-update semantics: a
    field is applied when present, even if its value is ``None``.
    """

    ev_id: int | None = None
    driver_id: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: TripStatus | None = None
    origin: str | None = None
    destination: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc_times(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def has(self, field: str) -> bool:
        """Return True if *field* was supplied with a non-null value."""
        return field in self.model_fields_set and getattr(self, field) is not None


class DriverRequest(BaseModel):
    name: str = Field(min_length=1)
    phone: str | None = None
    license_id: str | None = None
    active: bool = True


class EvRequest(BaseModel):
    registration: str = Field(min_length=1)
    model: str | None = None
    battery_capacity_kwh: float = Field(default=0, ge=0)
    current_battery_percent: float = Field(default=100, ge=0, le=100)
    status: EvStatus = EvStatus.IDLE
    last_known_latitude: float | None = None
    last_known_longitude: float | None = None
    last_seen_at: datetime | None = None


class StatusCount(BaseModel):
    status: str
    count: int


class AtRiskVehicle(BaseModel):
    """A low-battery vehicle booked on a planned trip that starts soon."""

    ev_id: int
    registration: str
    current_battery_percent: float
    last_seen_at: datetime | None = None
    trip_id: int
    trip_start_time: datetime
    origin: str | None = None
    destination: str | None = None
