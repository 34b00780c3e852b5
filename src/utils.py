"""Small shared helpers."""

from datetime import datetime, timezone


def utc_timestamp() -> str:
    """Return the current UTC time as ISO8601 with millisecond precision.

    Example: ``2024-05-01T12:00:00.123Z``.
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
