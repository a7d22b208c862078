"""
Weekly recurrence expansion.

Weekdays use ``date.weekday()`` numbering: 0 is Monday, 6 is Sunday.
The base occurrence is never part of the expansion.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, List, Tuple

MAX_RECURRENCE_DAYS = 366


class RecurrenceError(ValueError):
    pass


def validate_weekdays(weekdays: Iterable[int]) -> List[int]:
    days = sorted(set(weekdays))
    if not days:
        raise RecurrenceError("At least one recurring day is required")
    for day in days:
        if not 0 <= day <= 6:
            raise RecurrenceError(f"Invalid weekday {day}; expected 0 (Monday) to 6 (Sunday)")
    return days


def expand_occurrences(
    base_start: datetime,
    base_end: datetime,
    weekdays: Iterable[int],
    until: date,
) -> List[Tuple[datetime, datetime]]:
    """
    Every occurrence after the base date up to and including ``until``.

    Each occurrence keeps the base time of day and duration.
    """
    days = set(validate_weekdays(weekdays))
    base_date = base_start.date()
    if until < base_date:
        raise RecurrenceError("Recurring end date must not be before the booking date")
    if (until - base_date).days > MAX_RECURRENCE_DAYS:
        raise RecurrenceError(
            f"Recurring bookings cannot span more than {MAX_RECURRENCE_DAYS} days"
        )

    duration = base_end - base_start
    occurrences: List[Tuple[datetime, datetime]] = []
    offset = 1
    current = base_date + timedelta(days=offset)
    while current <= until:
        if current.weekday() in days:
            start = base_start + timedelta(days=offset)
            occurrences.append((start, start + duration))
        offset += 1
        current = base_date + timedelta(days=offset)
    return occurrences
