"""
Half-open interval overlap checks for booking time ranges.

[a, b) and [c, d) overlap iff a < d and c < b. Back-to-back ranges
(one ends exactly when the other starts) do not overlap. Naive datetimes
are read as UTC so rows loaded from SQLite compare with aware inputs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional, Protocol

from ..core.timezone_utils import ensure_utc


class TimeRange(Protocol):
    id: Any
    start_time: datetime
    end_time: datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return ensure_utc(a_start) < ensure_utc(b_end) and ensure_utc(b_start) < ensure_utc(a_end)


def find_overlapping(
    start: datetime,
    end: datetime,
    existing: Iterable[TimeRange],
    exclude_id: Optional[str] = None,
) -> List[TimeRange]:
    """Return the ranges in ``existing`` that overlap [start, end), skipping ``exclude_id``."""
    return [
        item
        for item in existing
        if item.id != exclude_id and overlaps(start, end, item.start_time, item.end_time)
    ]


def has_overlap(
    start: datetime,
    end: datetime,
    existing: Iterable[TimeRange],
    exclude_id: Optional[str] = None,
) -> bool:
    return any(
        item.id != exclude_id and overlaps(start, end, item.start_time, item.end_time)
        for item in existing
    )
