"""Bookable start times for a service on a given date.

A service opens booking windows on some weekdays. Each window yields a start
time every ``SLOT_STEP_MINUTES`` from its start (inclusive) to its end
(exclusive). A slot is available when no venue-wide block covers it and at
least one table large enough for the party is free for the whole duration.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from backend.app.domain.conflicts import OccupiedInterval
from backend.app.domain.timeutils import minutes_overlap, minutes_to_time, time_to_minutes

SLOT_STEP_MINUTES = 15
WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True)
class BookingWindow:
    days: tuple[str, ...]
    start_time: str
    end_time: str


@dataclass(frozen=True)
class BookableTable:
    id: int
    seats: int


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool


def weekday_code(booking_date: date) -> str:
    return WEEKDAYS[booking_date.weekday()]


def generate_time_slots(
    windows: Iterable[BookingWindow],
    booking_date: date,
    step: int = SLOT_STEP_MINUTES,
) -> list[str]:
    """Sorted, de-duplicated start times from the windows open on ``booking_date``."""
    day = weekday_code(booking_date)
    minutes: set[int] = set()
    for window in windows:
        if day not in window.days:
            continue
        minutes.update(range(time_to_minutes(window.start_time), time_to_minutes(window.end_time), step))
    return [minutes_to_time(value) for value in sorted(minutes)]


def slot_is_available(
    occupied: Sequence[OccupiedInterval],
    tables: Sequence[BookableTable],
    start_time: str,
    duration_minutes: int,
    party_size: int,
) -> bool:
    start = time_to_minutes(start_time)
    end = start + duration_minutes
    overlapping = [item for item in occupied if minutes_overlap(start, end, item.start, item.end)]

    if any(item.kind == "block" and not item.table_ids for item in overlapping):
        return False

    taken = {table_id for item in overlapping for table_id in item.table_ids}
    return any(table.seats >= party_size and table.id not in taken for table in tables)


def list_slots(
    windows: Iterable[BookingWindow],
    occupied: Sequence[OccupiedInterval],
    tables: Sequence[BookableTable],
    booking_date: date,
    duration_minutes: int,
    party_size: int,
) -> list[Slot]:
    return [
        Slot(time=time, available=slot_is_available(occupied, tables, time, duration_minutes, party_size))
        for time in generate_time_slots(windows, booking_date)
    ]
