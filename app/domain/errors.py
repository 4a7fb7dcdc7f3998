"""Errors raised by the trip scheduler and fleet services.

Each error carries a stable ``error_code`` and the HTTP status the API layer
should answer with, so handlers can render them without a lookup table.
"""

from __future__ import annotations

from typing import Any


class SchedulingError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(SchedulingError):
    """Malformed or contradictory request (missing field, inverted interval)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION",
            status_code=400,
            details=details,
        )


class NotFoundError(SchedulingError):
    """Referenced trip, driver or vehicle does not exist."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            message=f"{entity_type} with id {entity_id} not found",
            error_code="ERR_NOT_FOUND",
            status_code=404,
            details={"entity": entity_type, "id": entity_id},
        )


class ConflictError(SchedulingError):
    """Proposed trip overlaps an existing trip of the same driver or vehicle."""

    def __init__(self, reason: str, conflicting_trip_ids: list[int] | None = None) -> None:
        self.reason = reason
        self.conflicting_trip_ids = conflicting_trip_ids or []
        super().__init__(
            message=reason,
            error_code="ERR_CONFLICT",
            status_code=409,
            details={"conflicting_trip_ids": self.conflicting_trip_ids},
        )
