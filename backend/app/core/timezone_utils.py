"""
Timezone utilities for the auto-école backend.

Slot dates and times are stored as local wall-clock values of the school.
Comparisons against "now" happen on aware datetimes.
"""

from datetime import date, datetime, time
from typing import Optional

import pytz

from app.core.constants import DEFAULT_SCHOOL_TIMEZONE


def get_school_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    """Return the school's timezone, falling back to the platform default."""
    try:
        return pytz.timezone(tz_name or DEFAULT_SCHOOL_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_SCHOOL_TIMEZONE)


def ensure_aware(dt: Optional[datetime]) -> datetime:
    """Current UTC time when ``dt`` is None; naive values are taken as UTC."""
    if dt is None:
        return datetime.now(pytz.UTC)
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt


def localize_slot_time(day: date, at: time, tz_name: Optional[str]) -> datetime:
    """Aware datetime for a local slot date/time in the school's timezone."""
    tz = get_school_timezone(tz_name)
    return tz.localize(datetime.combine(day, at))


def school_today(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """'Today' as seen from the school."""
    return ensure_aware(now).astimezone(get_school_timezone(tz_name)).date()
