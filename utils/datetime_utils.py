"""
Timezone-aware datetime utilities for the referral program.

Every timestamp stored or returned by the application is a timezone-aware
UTC datetime. SQLite hands naive datetimes back from DateTime columns, so
anything read from the database goes through ensure_utc() before it is
compared or serialized.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional


def utc_now() -> datetime:
    """
    Get the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone information
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime object is timezone-aware and in UTC.

    Naive datetimes are assumed to already be UTC; aware datetimes in
    another zone are converted.

    Example:
        >>> ensure_utc(datetime(2025, 1, 1, 12, 0, 0)).tzinfo
        datetime.timezone.utc
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def add_calendar_days(dt: datetime, days: int) -> datetime:
    """
    Add whole calendar days to a timestamp (not business days).

    Example:
        >>> add_calendar_days(datetime(2025, 1, 1, tzinfo=timezone.utc), 30)
        datetime.datetime(2025, 1, 31, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return ensure_utc(dt) + timedelta(days=days)


def format_utc_iso(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO 8601 UTC string, passing None through."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_utc_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 string to a timezone-aware UTC datetime.

    A trailing 'Z' is accepted.

    Raises:
        ValueError: If the string is not valid ISO 8601
    """
    if iso_string.endswith('Z'):
        iso_string = iso_string[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(iso_string))


def utc_date_stamp(dt: Optional[datetime] = None) -> str:
    """YYYY-MM-DD of the given (or current) UTC time, used in export filenames."""
    return ensure_utc(dt or utc_now()).strftime('%Y-%m-%d')
