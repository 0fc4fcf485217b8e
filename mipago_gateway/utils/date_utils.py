"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (storage keeps naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from start to end"""
    return (end - start).days


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[start, end) datetimes covering a calendar day"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
