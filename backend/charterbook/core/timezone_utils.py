"""
Timezone utilities for Charterbook.

Captains publish availability in local wall-clock time; bookings are stored
as UTC instants. These helpers convert between the two with pytz.
"""

from datetime import date, datetime, time, timezone

import pytz


def get_timezone(name: str) -> pytz.BaseTzInfo:
    """Return a pytz timezone, raising pytz.UnknownTimeZoneError for bad names."""
    return pytz.timezone(name)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime (naive values are assumed UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_today(now: datetime, tz_name: str) -> date:
    """'Today' in the given timezone for the injected ``now``."""
    return ensure_utc(now).astimezone(get_timezone(tz_name)).date()


def localize(day: date, at: time, tz_name: str) -> datetime:
    """Combine a local date and wall-clock time into an aware local datetime."""
    tz = get_timezone(tz_name)
    return tz.localize(datetime.combine(day, at))


def to_local(dt: datetime, tz_name: str) -> datetime:
    return ensure_utc(dt).astimezone(get_timezone(tz_name))


def day_of_week(day: date) -> int:
    """Day-of-week with Sunday as 0, as stored on availability windows."""
    return (day.weekday() + 1) % 7
