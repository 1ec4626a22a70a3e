"""Timestamp parsing and formatting helpers."""

from datetime import datetime, timezone
from typing import Optional

# Format used by Twitter archive exports, e.g. "Wed Oct 10 20:19:24 +0000 2018"
ARCHIVE_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an archive or ISO-8601 timestamp into an aware UTC datetime.

    Returns None for empty or unparsable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.strptime(text, ARCHIVE_DATE_FORMAT)
        except ValueError:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Format as ISO-8601 with millisecond precision and a Z suffix."""
    if value is None:
        return None
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
