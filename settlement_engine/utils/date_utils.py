"""Date manipulation utilities"""

import math
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a timestamp to naive UTC; naive input is taken to already be UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_days(from_dt: datetime, days: int) -> datetime:
    """Add whole calendar days to a timestamp"""
    return from_dt + timedelta(days=days)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Signed number of hours from `earlier` to `later` (negative if later < earlier)"""
    return (later - earlier).total_seconds() / SECONDS_PER_HOUR


def ceil_days_until(target: datetime, now: datetime) -> int:
    """Whole days remaining until target, rounded up, never below zero"""
    seconds = (target - now).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))
