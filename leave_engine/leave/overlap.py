"""Closed-interval conflict detection between leave requests."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol

from leave_engine.common.exceptions import ConflictError


class DatedRequest(Protocol):
    start_date: date
    end_date: date


def ranges_overlap(start1: date, end1: date, start2: date, end2: date) -> bool:
    """True when the two inclusive ranges share at least one day."""
    return start1 <= end2 and end1 >= start2


def find_conflict(
    new_start: date,
    new_end: date,
    active_requests: Iterable[DatedRequest],
) -> Optional[DatedRequest]:
    """Return the first request whose range touches ``[new_start, new_end]``."""
    for existing in active_requests:
        if ranges_overlap(new_start, new_end, existing.start_date, existing.end_date):
            return existing
    return None


def ensure_no_conflict(
    new_start: date,
    new_end: date,
    active_requests: Iterable[DatedRequest],
) -> None:
    conflict = find_conflict(new_start, new_end, active_requests)
    if conflict is None:
        return

    status = getattr(conflict, "status", None)
    status_label = status.value if status is not None else "active"
    raise ConflictError(
        f"Requested dates overlap an existing {status_label} leave request "
        f"from {conflict.start_date.isoformat()} to {conflict.end_date.isoformat()}.",
        errors={
            "conflicting_request": {
                "start_date": conflict.start_date.isoformat(),
                "end_date": conflict.end_date.isoformat(),
                "status": status_label,
            }
        },
    )
