"""
Timezone helpers.

All timestamps are stored and compared in UTC. SQLite hands back naive
datetimes, so anything read from the database goes through ``ensure_utc``
before it is compared with an aware value.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime; naive values are assumed to already be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
