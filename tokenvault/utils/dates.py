"""Timestamp helpers shared by the store and the wire protocol."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime for storage or JSON output.

    Naive datetimes are assumed to be UTC.

    Args:
        value: The datetime to format.

    Returns:
        ISO 8601 string with an explicit offset.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp.

    Accepts ISO 8601 strings as well as SQLite's ``datetime('now')`` format
    (``YYYY-MM-DD HH:MM:SS``), which carries no offset and is UTC.

    Args:
        value: The stored string, or None.

    Returns:
        Timezone-aware datetime, or None if value is empty.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
