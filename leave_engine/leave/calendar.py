"""Day counting over inclusive date ranges.

Weekends are Saturday and Sunday; public holidays are not modelled.
"""

from __future__ import annotations

from datetime import date, timedelta

from leave_engine.common.exceptions import ValidationException

WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})  # Sat, Sun


def _ensure_ordered(start: date, end: date) -> None:
    if start > end:
        raise ValidationException(
            {"end_date": ["End date must be on or after the start date."]}
        )


def count_working_days(start: date, end: date) -> int:
    """Count Monday–Friday dates in ``[start, end]``, both ends included.

    Raises ``ValidationException`` for an inverted range.
    """
    _ensure_ordered(start, end)

    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5

    current = start + timedelta(days=full_weeks * 7)
    for _ in range(remainder):
        if current.weekday() not in WEEKEND_DAYS:
            count += 1
        current += timedelta(days=1)
    return count


def count_calendar_days(start: date, end: date) -> int:
    """Inclusive calendar-day count; 0 when the range is inverted."""
    if start > end:
        return 0
    return (end - start).days + 1

