"""
Core Utilities

Shared helpers used across the application.
"""
from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def today() -> date:
    return utcnow().date()


def as_date(value) -> Optional[date]:
    """Coerce a DATE/DATETIME column value (or ISO string from SQLite) to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None
