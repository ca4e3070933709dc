"""
Timezone-aware datetime utilities.

All datetime operations should use these helpers to ensure consistent
timezone handling across the codebase.
"""
from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def parse_db_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """
    Parse timestamp from database, ensuring timezone-aware UTC.

    Handles:
    - ISO format strings with Z suffix
    - ISO format strings with +00:00 offset
    - Naive datetimes (assumed UTC)
    - Already timezone-aware datetimes

    Returns:
        Timezone-aware datetime in UTC, or None if input is None/empty/unparseable
    """
    if value is None:
        return None

    if isinstance(value, str):
        if not value:
            return None
        value = value.replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
    elif isinstance(value, datetime):
        dt = value
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt


def format_signature_date(value: Optional[Union[str, datetime]]) -> str:
    """
    Format a signing timestamp as a US short date (MM/DD/YYYY).

    Falls back to today's date when the timestamp is missing or invalid.
    """
    dt = parse_db_timestamp(value) or utc_now()
    return f"{dt.month:02d}/{dt.day:02d}/{dt.year}"
