"""
UTC datetime helpers.

Every timestamp column is timezone-aware and written in UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Used as the column default everywhere."""
    return datetime.now(timezone.utc)


def isoformat_or_none(dt) -> str | None:
    """Serialize a datetime for API responses, treating naive values (SQLite) as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")
