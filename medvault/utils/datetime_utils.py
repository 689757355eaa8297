"""
Date/time helpers.

Storage: all timestamps are stored and compared as tz-aware UTC.
SQLite hands back naive datetimes, so every comparison goes through as_utc().
"""

from datetime import datetime, timezone


def as_utc(dt: datetime) -> datetime:
    """
    Convert dt to tz-aware UTC.
    If dt is naive, we treat it as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

