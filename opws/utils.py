"""
Utility functions for OPWS: timestamp parsing and formatting.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_datetime_adapter = TypeAdapter(datetime)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an absolute timestamp into an aware UTC datetime.

    Accepts datetime objects, ISO-8601 strings and unix epoch numbers
    (seconds or milliseconds). Naive values are taken as UTC.

    Raises:
        ValueError: value is empty or not a timestamp
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("timestamp is required")
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    try:
        parsed = _datetime_adapter.validate_python(value)
    except PydanticValidationError:
        raise ValueError(f"not a timestamp: {value!r}") from None
    return ensure_utc(parsed)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
