"""
Timestamp parsing helpers.

All datetimes inside the engine are naive UTC. Aware values are converted
to UTC and stripped; strings are parsed as ISO 8601 (a trailing 'Z' is
accepted).
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp-like value into a naive UTC datetime.

    Returns None for missing or malformed values instead of raising, so
    callers can drop the row and carry on.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date(value: Any) -> Optional[date]:
    """Parse a date-like value; datetimes are truncated to their date."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    dt = parse_timestamp(value)
    return dt.date() if dt else None


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from ``earlier`` to ``later``, truncated toward zero."""
    seconds = (later - earlier).total_seconds()
    return int(seconds / 86400)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(dt: datetime) -> datetime:
    """Start of the Sunday-based week containing ``dt``."""
    # Python weekday(): Monday=0 ... Sunday=6
    days_since_sunday = (dt.weekday() + 1) % 7
    return start_of_day(dt) - timedelta(days=days_since_sunday)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt).replace(day=1)
