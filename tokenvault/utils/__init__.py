"""Utility functions."""

from tokenvault.utils.dates import parse_timestamp, to_iso, utc_now


def normalize_project_name(name: str) -> str:
    """Normalize a project name as received from a client.

    Args:
        name: Raw project name.

    Returns:
        The name with surrounding whitespace removed.
    """
    return name.strip()


__all__ = ["normalize_project_name", "parse_timestamp", "to_iso", "utc_now"]
