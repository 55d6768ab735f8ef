"""Wall-clock arithmetic on "HH:MM" strings.

Times are minutes since midnight. Day wrap in ``add_minutes`` is silent: a
result of "00:15" does not say whether it belongs to the next day.
"""
from __future__ import annotations

import re

MINUTES_PER_DAY = 1440

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


class InvalidTimeFormat(ValueError):
    """Raised for malformed or out-of-range "HH:MM" values."""


def time_to_minutes(time: str) -> int:
    # Postgres TIME columns come back as "HH:MM:SS"; seconds are checked, then dropped.
    match = _TIME_RE.match(time.strip()) if isinstance(time, str) else None
    if match is None:
        raise InvalidTimeFormat(f"Invalid time format: {time!r}. Expected HH:MM format.")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59 and 0 <= seconds <= 59):
        raise InvalidTimeFormat(f"Invalid time format: {time!r}. Expected HH:MM format.")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTimeFormat(f"Minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(time: str, delta: int) -> str:
    return minutes_to_time((time_to_minutes(time) + delta) % MINUTES_PER_DAY)


def minutes_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    # Half-open ranges: back-to-back bookings (end1 == start2) do not overlap.
    return start1 < end2 and start2 < end1


def ranges_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    return minutes_overlap(
        time_to_minutes(start1),
        time_to_minutes(end1),
        time_to_minutes(start2),
        time_to_minutes(end2),
    )
