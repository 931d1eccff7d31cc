"""Timezone helpers shared by the scheduler and the gamification store."""

from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_clock(value: str) -> time:
    """Parse an "HH:MM" 24-hour clock string."""
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


def local_now(now: datetime, tz_name: str) -> datetime:
    return ensure_utc(now).astimezone(ZoneInfo(tz_name))


def js_weekday(value: datetime) -> int:
    """Day of week with 0 = Sunday, as stored in engagement settings."""
    return value.isoweekday() % 7
