"""
Shared helpers for SafetyTrack data models.

This module provides ID generation, timezone-aware timestamps, calendar
arithmetic, and the serialization functions used by the frozen dataclass
models throughout SafetyTrack.
"""

import calendar
import json
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any


def generate_uuid() -> str:
    """Generate a new UUID4 string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Naive datetimes are assumed to already be in UTC.

    Args:
        value: The datetime to normalize.

    Returns:
        A timezone-aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def subtract_months(value: datetime, months: int) -> datetime:
    """
    Move a datetime back by a number of calendar months.

    The day of month is clamped to the length of the target month, so
    31 March minus one month is 28 (or 29) February.

    Args:
        value: The starting datetime.
        months: Number of months to subtract. Must be non-negative.

    Returns:
        The shifted datetime, preserving time of day and tzinfo.
    """
    total = value.year * 12 + (value.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO datetime string, returning datetimes unchanged.

    Args:
        value: ISO 8601 string, datetime, or None.

    Returns:
        A UTC datetime, or None if value is None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def serialize_value(value: Any, exclude_none: bool = False) -> Any:
    """
    Serialize a single value to a JSON-compatible type.

    Args:
        value: Value to serialize.
        exclude_none: If True, exclude None values in nested dicts/lists.

    Returns:
        JSON-compatible representation of the value.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, dict):
        result = {}
        for k, v in value.items():
            if exclude_none and v is None:
                continue
            result[k] = serialize_value(v, exclude_none)
        return result
    elif isinstance(value, (list, tuple)):
        return [serialize_value(item, exclude_none) for item in value]
    elif hasattr(value, "to_dict"):
        return value.to_dict(exclude_none)
    elif hasattr(value, "value"):
        # Enums
        return value.value
    return value


def model_to_dict(instance: Any, exclude_none: bool = False) -> dict[str, Any]:
    """
    Convert a dataclass instance to a dictionary.

    Args:
        instance: A dataclass instance to convert.
        exclude_none: If True, exclude keys with None values from the output.

    Returns:
        A dictionary representation of the instance with all fields serialized
        to JSON-compatible types.
    """
    result = asdict(instance)
    return {
        k: serialize_value(v, exclude_none)
        for k, v in result.items()
        if not (exclude_none and v is None)
    }


def model_to_json(
    instance: Any, indent: int | None = None, exclude_none: bool = False
) -> str:
    """
    Convert a dataclass instance to a JSON string.

    Args:
        instance: A dataclass instance to convert.
        indent: Number of spaces for indentation. If None, output is compact.
        exclude_none: If True, exclude keys with None values from the output.

    Returns:
        A JSON string representation of the instance.
    """
    return json.dumps(model_to_dict(instance, exclude_none), indent=indent)
