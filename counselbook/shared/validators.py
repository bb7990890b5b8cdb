"""Shared validation utilities"""

from datetime import datetime, time
from typing import Optional, Union


def parse_time_of_day(value: Union[str, time, None]) -> Optional[time]:
    """
    Parse a slot time.

    Accepts HH:MM and HH:MM:SS strings (the two shapes calendars send) or a
    ``datetime.time``.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if value is None or isinstance(value, time):
        return value

    text = value.strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM or HH:MM:SS)")


def validate_time_range(start_time: time, end_time: time) -> None:
    """
    Validate that a slot ends after it starts.

    Raises:
        ValueError: If end_time is not after start_time
    """
    if end_time <= start_time:
        raise ValueError(
            f"end_time {end_time.isoformat()} must be after start_time {start_time.isoformat()}"
        )


def validate_choice(value: str, allowed, field: str) -> str:
    """
    Validate that ``value`` is one of ``allowed``.

    Raises:
        ValueError: If the value is not allowed
    """
    if value not in allowed:
        raise ValueError(f"Invalid {field}: {value!r}. Expected one of: {', '.join(sorted(allowed))}")
    return value
