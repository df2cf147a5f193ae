"""
Datetime utilities.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Get current UTC time as a naive datetime.

    All DateTime columns are stored without tzinfo and are interpreted as UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    """Serialize a stored (naive UTC) datetime with an explicit UTC offset."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
