"""Timestamp helpers for RFC 3339 values exchanged with the control plane."""

from datetime import datetime, timezone
from typing import Optional, Union

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Compares as older than every real timestamp.
MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


def parse_rfc3339(value: Union[str, datetime]) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Naive datetimes are assumed to be UTC.

    Raises:
        ValueError: If the value is not a valid timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_rfc3339_or_min(value: Optional[Union[str, datetime]]) -> datetime:
    """Parse a timestamp, mapping missing or invalid values to ``MIN_TIMESTAMP``."""
    if not value:
        return MIN_TIMESTAMP
    try:
        return parse_rfc3339(value)
    except (TypeError, ValueError):
        return MIN_TIMESTAMP


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as a second-precision UTC RFC 3339 string."""
    return parse_rfc3339(value).strftime(RFC3339_FORMAT)
