"""
Time helpers.

All timestamps are stored as naive UTC datetimes so comparisons behave the
same on SQLite and PostgreSQL.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end precedes start)."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def add_days(moment: datetime, days: float) -> datetime:
    """Shift a datetime by a (possibly fractional) number of days."""
    return moment + timedelta(days=days)
