"""Time helpers. Timestamps are stored as naive UTC."""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def date_key(tz_name: str, now: Optional[datetime] = None) -> str:
    """
    Calendar day (YYYY-MM-DD) in the given timezone.

    ``now`` may be naive (treated as UTC) or aware.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date().isoformat()


def day_bounds(tz_name: str, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Start and end (aware) of the current calendar day in ``tz_name``."""
    tz = ZoneInfo(tz_name)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    end = local.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end
