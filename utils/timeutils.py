"""
Timezone helpers.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.  SQLite hands back naive values for
    timezone-aware columns, and naive request values are taken as UTC.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def day_bounds_utc(day: date, tz_name: Optional[str]) -> Tuple[datetime, datetime]:
    """
    Return ``[start, end)`` of ``day`` in timezone ``tz_name`` as UTC
    datetimes.  ``None`` means UTC.
    """
    tz = ZoneInfo(tz_name) if tz_name else timezone.utc
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
