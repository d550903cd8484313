"""
Time helpers for rank locks and daily point windows.

Timestamps are stored as naive UTC datetimes; local time only matters for
the daily-points boundary, which follows Config.TIMEZONE.
"""

import math
from datetime import datetime, timezone
from typing import Optional

import pytz


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_day_start(now: datetime, timezone_name: str = 'UTC') -> datetime:
    """
    Return the most recent local midnight in `timezone_name`, as naive UTC.

    Args:
        now: Naive UTC reference time
        timezone_name: Olson name of the local zone

    Raises:
        pytz.UnknownTimeZoneError: If the zone name is invalid
    """
    tz = pytz.timezone(timezone_name)
    local_now = pytz.utc.localize(now).astimezone(tz)
    local_midnight = tz.localize(datetime(local_now.year, local_now.month, local_now.day))
    return local_midnight.astimezone(pytz.utc).replace(tzinfo=None)


def is_future(moment: Optional[datetime], now: datetime) -> bool:
    return moment is not None and moment > now


def days_remaining(until: Optional[datetime], now: datetime) -> int:
    """Whole days left until `until`, rounded up. 0 when already past."""
    if not is_future(until, now):
        return 0
    return math.ceil((until - now).total_seconds() / 86400)
