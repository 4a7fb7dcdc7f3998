"""Trip scheduling: validation, double-booking checks and persistence.

Every mutating operation validates the whole request before it writes, so a
failure never leaves a partial change behind. The conflict check and the save
run while holding the per-driver and per-vehicle scheduling locks of the trip
store, which keeps two concurrent requests for the same driver or vehicle from
both passing their checks against stale data.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable

from app.domain.errors import ConflictError, NotFoundError, ValidationError
from app.domain.models import AtRiskVehicle, Driver, Ev, Trip, TripRequest, TripStatus
from app.repos.memory import DriverRepository, EvRepository, TripRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_window(now: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return ``[start_of_today, start_of_tomorrow)`` for *now* in zone *tz*."""
    today = now.astimezone(tz).date()
    start = datetime.combine(today, time.min, tzinfo=tz)
    end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


class TripScheduler:
    """Creates, updates and deletes trips without double-booking anyone."""

    def __init__(
        self,
        trip_repo: TripRepository,
        driver_repo: DriverRepository,
        ev_repo: EvRepository,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utcnow,
        recheck_every_update: bool = True,
    ) -> None:
        self.trip_repo = trip_repo
        self.driver_repo = driver_repo
        self.ev_repo = ev_repo
        self.tz = tz
        self.clock = clock
        self.recheck_every_update = recheck_every_update

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_trips(self) -> list[Trip]:
        return self.trip_repo.find_all()

    def get_trip(self, trip_id: int) -> Trip | None:
        return self.trip_repo.find_by_id(trip_id)

    def get_today_trips(self) -> list[Trip]:
        """Trips starting today in the configured timezone."""
        start, end = day_window(self.clock(), self.tz)
        return self.trip_repo.find_by_start_time_between(start, end)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_trip(self, request: TripRequest) -> Trip:
        end_time = self._require_end_time(request)
        start_time = request.start_time if request.has("start_time") else self.clock()
        self._check_order(start_time, end_time)

        ev = self._resolve_ev(request.ev_id)
        driver = self._resolve_driver(request.driver_id)

        with self.trip_repo.scheduling_lock(driver_ids=[driver.id], ev_ids=[ev.id]):
            self._check_driver_free(driver.id, start_time, end_time)
            self._check_ev_free(ev.id, start_time, end_time)

            trip = self.trip_repo.save(
                Trip(
                    ev_id=ev.id,
                    driver_id=driver.id,
                    start_time=start_time,
                    end_time=end_time,
                    status=request.status if request.has("status") else TripStatus.PLANNED,
                    origin=request.origin,
                    destination=request.destination,
                )
            )

        logger.info(
            "Trip created",
            extra={"trip_id": trip.id, "driver_id": trip.driver_id, "ev_id": trip.ev_id},
        )
        return trip

    def update_trip(self, trip_id: int, request: TripRequest) -> Trip:
        """Apply the fields present in *request* to an existing trip.

        The request is validated and any new driver or vehicle resolved before
        the scheduling locks are taken, so only known ids are ever locked. The
        conflict re-check always excludes the trip itself. With
        ``recheck_every_update`` off, the legacy rule applies: the driver is
        only re-checked when the driver or start time changes, and the vehicle
        only when the vehicle or start time changes.
        """
        while True:
            existing = self._require_trip(trip_id)
            end_time = self._require_end_time(request)
            start_time = request.start_time if request.has("start_time") else existing.start_time
            self._check_order(start_time, end_time)

            ev = self._resolve_ev(request.ev_id) if request.has("ev_id") else None
            driver = self._resolve_driver(request.driver_id) if request.has("driver_id") else None
            driver_ids = {existing.driver_id, driver.id if driver else existing.driver_id}
            ev_ids = {existing.ev_id, ev.id if ev else existing.ev_id}

            with self.trip_repo.scheduling_lock(driver_ids=driver_ids, ev_ids=ev_ids):
                current = self._require_trip(trip_id)
                if current != existing:
                    # Changed concurrently; validate again against the new state.
                    continue
                trip = self._apply_update(current, request, start_time, end_time, ev, driver)
                break

        logger.info(
            "Trip updated",
            extra={"trip_id": trip.id, "fields": sorted(request.model_fields_set)},
        )
        return trip

    def delete_trip(self, trip_id: int) -> None:
        existing = self._require_trip(trip_id)
        with self.trip_repo.scheduling_lock(
            driver_ids=[existing.driver_id], ev_ids=[existing.ev_id]
        ):
            if not self.trip_repo.exists_by_id(trip_id):
                raise NotFoundError("trip", trip_id)
            self.trip_repo.delete_by_id(trip_id)
        logger.info("Trip deleted", extra={"trip_id": trip_id})

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_at_risk_vehicles(
        self,
        hours: int,
        battery_threshold: float = 20,
    ) -> list[AtRiskVehicle]:
        """Planned trips starting within *hours* whose vehicle battery is low.

        A vehicle is at risk when its ``current_battery_percent`` is below
        *battery_threshold*. Rows are ordered by trip start.
        """
        now = self.clock()
        upcoming = self.trip_repo.find_by_status_and_start_time_between(
            TripStatus.PLANNED, now, now + timedelta(hours=hours)
        )
        rows: list[AtRiskVehicle] = []
        for trip in upcoming:
            ev = self.ev_repo.find_by_id(trip.ev_id)
            if ev is None or ev.current_battery_percent >= battery_threshold:
                continue
            rows.append(
                AtRiskVehicle(
                    ev_id=ev.id,
                    registration=ev.registration,
                    current_battery_percent=ev.current_battery_percent,
                    last_seen_at=ev.last_seen_at,
                    trip_id=trip.id,
                    trip_start_time=trip.start_time,
                    origin=trip.origin,
                    destination=trip.destination,
                )
            )
        return rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_update(
        self,
        current: Trip,
        request: TripRequest,
        start_time: datetime,
        end_time: datetime,
        ev: Ev | None,
        driver: Driver | None,
    ) -> Trip:
        ev_id = ev.id if ev is not None else current.ev_id
        driver_id = driver.id if driver is not None else current.driver_id

        moved = request.has("start_time")
        if self.recheck_every_update or driver is not None or moved:
            self._check_driver_free(driver_id, start_time, end_time, exclude_id=current.id)
        if self.recheck_every_update or ev is not None or moved:
            self._check_ev_free(ev_id, start_time, end_time, exclude_id=current.id)

        changes = current.model_dump()
        changes.update(ev_id=ev_id, driver_id=driver_id, start_time=start_time, end_time=end_time)
        if request.has("status"):
            changes["status"] = request.status
        for field in ("origin", "destination"):
            if field in request.model_fields_set:
                changes[field] = getattr(request, field)

        return self.trip_repo.save(Trip.model_validate(changes))

    @staticmethod
    def _require_end_time(request: TripRequest) -> datetime:
        if request.end_time is None:
            raise ValidationError("end time required")
        return request.end_time

    @staticmethod
    def _check_order(start_time: datetime, end_time: datetime) -> None:
        if end_time <= start_time:
            raise ValidationError(
                "end before start",
                details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
            )

    def _require_trip(self, trip_id: int) -> Trip:
        trip = self.trip_repo.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError("trip", trip_id)
        return trip

    def _resolve_ev(self, ev_id: int | None) -> Ev:
        if ev_id is None:
            raise ValidationError("vehicle id required")
        ev = self.ev_repo.find_by_id(ev_id)
        if ev is None:
            raise NotFoundError("vehicle", ev_id)
        return ev

    def _resolve_driver(self, driver_id: int | None) -> Driver:
        if driver_id is None:
            raise ValidationError("driver id required")
        driver = self.driver_repo.find_by_id(driver_id)
        if driver is None:
            raise NotFoundError("driver", driver_id)
        return driver

    def _check_driver_free(
        self,
        driver_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_id: int | None = None,
    ) -> None:
        clashes = self.trip_repo.find_overlapping_for_driver(
            driver_id, start_time, end_time, exclude_id
        )
        if clashes:
            ids = [t.id for t in clashes]
            logger.warning(
                "Driver double-booked",
                extra={"driver_id": driver_id, "conflicting_trip_ids": ids},
            )
            raise ConflictError("driver double-booked", ids)

    def _check_ev_free(
        self,
        ev_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_id: int | None = None,
    ) -> None:
        clashes = self.trip_repo.find_overlapping_for_ev(ev_id, start_time, end_time, exclude_id)
        if clashes:
            ids = [t.id for t in clashes]
            logger.warning(
                "Vehicle double-booked",
                extra={"ev_id": ev_id, "conflicting_trip_ids": ids},
            )
            raise ConflictError("vehicle double-booked", ids)
