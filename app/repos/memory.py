"""In-memory repositories for trips, drivers and vehicles.

Each repository guards its dict with a mutex. Readers filter a snapshot of
the stored values, so a concurrent ``save`` never invalidates an iteration.
"""

from __future__ import annotations

import itertools
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generic, Iterable, Iterator, TypeVar

from app.domain.models import Driver, Ev, EvStatus, StatusCount, Trip, TripStatus
from app.repos.locks import KeyedLock
from app.services.conflicts import find_conflicts

T = TypeVar("T", Trip, Driver, Ev)


class _DictRepository(Generic[T]):
    """Dict-backed store keyed by an integer id assigned on first save.

    Records are copied on the way in and out so that callers never hold a
    reference to stored state.
    """

    def __init__(self) -> None:
        self._store: dict[int, T] = {}
        self._ids = itertools.count(1)
        self._mutex = threading.Lock()

    def _snapshot(self) -> list[T]:
        with self._mutex:
            return list(self._store.values())

    def save(self, record: T) -> T:
        """Insert (assigning the next id) or replace a record."""
        stored = record.model_copy()
        with self._mutex:
            if stored.id is None:
                stored.id = next(self._ids)
            self._store[stored.id] = stored
        return stored.model_copy()

    def find_by_id(self, record_id: int) -> T | None:
        with self._mutex:
            record = self._store.get(record_id)
        return record.model_copy() if record is not None else None

    def exists_by_id(self, record_id: int) -> bool:
        with self._mutex:
            return record_id in self._store

    def find_all(self) -> list[T]:
        return [r.model_copy() for r in self._snapshot()]


class TripRepository(_DictRepository[Trip]):
    """Trip store with the overlap and time-window queries the scheduler needs."""

    def __init__(self) -> None:
        super().__init__()
        self._locks = KeyedLock()

    def delete_by_id(self, trip_id: int) -> None:
        with self._mutex:
            self._store.pop(trip_id, None)

    def find_overlapping_for_driver(
        self,
        driver_id: int,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> list[Trip]:
        candidates = [t for t in self._snapshot() if t.driver_id == driver_id]
        return [t.model_copy() for t in find_conflicts(start, end, candidates, exclude_id)]

    def find_overlapping_for_ev(
        self,
        ev_id: int,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> list[Trip]:
        candidates = [t for t in self._snapshot() if t.ev_id == ev_id]
        return [t.model_copy() for t in find_conflicts(start, end, candidates, exclude_id)]

    def find_by_start_time_between(self, start: datetime, end: datetime) -> list[Trip]:
        """Return trips whose start_time lies in the half-open range [start, end)."""
        return sorted(
            (t.model_copy() for t in self._snapshot() if start <= t.start_time < end),
            key=lambda t: t.start_time,
        )

    def find_by_status_and_start_time_between(
        self,
        status: TripStatus,
        start: datetime,
        end: datetime,
    ) -> list[Trip]:
        return [t for t in self.find_by_start_time_between(start, end) if t.status == status]

    @contextmanager
    def scheduling_lock(
        self,
        driver_ids: Iterable[int] = (),
        ev_ids: Iterable[int] = (),
    ) -> Iterator[None]:
        """Serialise check-then-save sequences touching the given drivers/vehicles."""
        keys = [("driver", d) for d in driver_ids] + [("ev", e) for e in ev_ids]
        with self._locks.hold(keys):
            yield


class DriverRepository(_DictRepository[Driver]):
    """Dict-backed store for Driver instances, keyed by id."""


class EvRepository(_DictRepository[Ev]):
    """Dict-backed store for Ev instances, keyed by id."""

    def count_by_status(self) -> list[StatusCount]:
        """Return one count per EvStatus, including statuses with no vehicles."""
        counts = Counter(e.status for e in self._snapshot())
        return [StatusCount(status=s.value, count=counts[s]) for s in EvStatus]


# ---------------------------------------------------------------------------
# Seed data – a small fleet with a couple of trips for the dashboard
# ---------------------------------------------------------------------------


def seed_fleet(
    trip_repo: TripRepository,
    driver_repo: DriverRepository,
    ev_repo: EvRepository,
) -> None:
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

    alice = driver_repo.save(Driver(name="Alice Moreau", phone="555-0101", license_id="D-1001"))
    bob = driver_repo.save(Driver(name="Bob Okafor", phone="555-0102", license_id="D-1002"))
    driver_repo.save(
        Driver(name="Carmen Diaz", phone="555-0103", license_id="D-1003", active=False)
    )

    van = ev_repo.save(Ev(registration="EV-100", model="e-Transit", battery_capacity_kwh=68))
    hatch = ev_repo.save(
        Ev(
            registration="EV-200",
            model="ID.3",
            battery_capacity_kwh=58,
            current_battery_percent=42,
            status=EvStatus.CHARGING,
        )
    )
    ev_repo.save(
        Ev(
            registration="EV-300",
            model="Kangoo E-Tech",
            battery_capacity_kwh=45,
            status=EvStatus.MAINTENANCE,
        )
    )

    trip_repo.save(
        Trip(
            ev_id=van.id,
            driver_id=alice.id,
            start_time=now + timedelta(hours=1),
            end_time=now + timedelta(hours=3),
            origin="North depot",
            destination="Harbour warehouse",
        )
    )
    trip_repo.save(
        Trip(
            ev_id=hatch.id,
            driver_id=bob.id,
            start_time=now + timedelta(days=1, hours=2),
            end_time=now + timedelta(days=1, hours=4),
            origin="Central station",
            destination="Airport",
        )
    )
