"""Timezone helpers for scheduling.

Storage is always UTC. Weekly slots are wall-clock times in the practice's
timezone, so booking checks convert through ``localize`` before comparing.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from practice_api.core.config import settings


def get_timezone(name: str | None) -> ZoneInfo:
    """Get a ZoneInfo timezone, falling back to the configured default."""
    if not name:
        return ZoneInfo(settings.DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are treated as UTC (that is how they come back from
    drivers without timezone support).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_input(value: datetime, tz: ZoneInfo) -> datetime:
    """
    Normalize a submitted datetime to aware UTC for storage.

    Naive values are wall-clock times in the practice timezone.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def localize(value: datetime, tz: ZoneInfo) -> datetime:
    """Convert a stored or submitted datetime into the practice timezone."""
    return ensure_utc(value).astimezone(tz)
