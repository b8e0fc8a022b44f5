"""Conversions between the portal's 12-hour display times and 24-hour wire times."""

from __future__ import annotations

import re

_TIME_PATTERN = re.compile(
    r"^\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s*(?P<meridiem>[AaPp][Mm])?\s*$"
)


def _parse(value: str) -> tuple[int, int, int]:
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Unrecognised time value: {value!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    meridiem = match.group("meridiem")

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"Hour out of range for a 12-hour time: {value!r}")
        # 12 AM is midnight, 12 PM is noon
        hour = hour % 12
        if meridiem.upper() == "PM":
            hour += 12
    elif hour > 23:
        raise ValueError(f"Hour out of range: {value!r}")

    if minute > 59 or second > 59:
        raise ValueError(f"Minute or second out of range: {value!r}")
    return hour, minute, second


def to_24_hour(value: str) -> str:
    """Return the ``HH:MM:SS`` wire form of a 12-hour or 24-hour time."""

    hour, minute, second = _parse(value)
    return f"{hour:02d}:{minute:02d}:{second:02d}"


def to_12_hour(value: str) -> str:
    """Return the ``hh:MM AM`` display form of a time."""

    hour, minute, _ = _parse(value)
    meridiem = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour:02d}:{minute:02d} {meridiem}"


def normalize_slot_time(value: str) -> str:
    """Return the ``HH:MM`` form slots are keyed by."""

    hour, minute, _ = _parse(value)
    return f"{hour:02d}:{minute:02d}"
