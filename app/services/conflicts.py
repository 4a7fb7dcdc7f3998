"""Service for detecting scheduling conflicts between trips."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from app.domain.models import Trip


def overlaps(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Return True if the two time ranges overlap.

    Overlap rule: start_a < end_b AND end_a > start_b, or both ranges are
    exactly identical. Exact boundary touches (end == start) are NOT
    considered conflicts.
    """
    if start_a == start_b and end_a == end_b:
        return True
    return start_a < end_b and end_a > start_b


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_trips: Iterable[Trip],
    exclude_id: int | None = None,
) -> list[Trip]:
    """Return existing trips that overlap with the given time range.

    The trip with id *exclude_id* is skipped so an update never conflicts
    with its own stored version.
    """
    return [
        trip
        for trip in existing_trips
        if (exclude_id is None or trip.id != exclude_id)
        and overlaps(new_start, new_end, trip.start_time, trip.end_time)
    ]
