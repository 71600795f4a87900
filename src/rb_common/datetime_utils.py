"""UTC datetime utilities and calendar-month arithmetic."""

import calendar
import math
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, keeping day-of-month and time of day.

    The day is clamped to the last day of shorter months:
    Jan 31 + 1 month -> Feb 28 (or 29), Mar 31 + 1 month -> Apr 30.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def days_until(target: datetime, now: datetime) -> int:
    """ceil((target - now) / 1 day); negative once target has passed."""
    delta: timedelta = ensure_utc(target) - ensure_utc(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)
