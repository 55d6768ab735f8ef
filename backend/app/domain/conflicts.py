"""Table occupancy checks for walk-ins and new bookings.

Existing bookings and blocks are reduced to half-open minute intervals on the
booking date. The earliest interval that overlaps the requested window
decides the outcome.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from backend.app.domain.durations import DEFAULT_DURATION_MINUTES
from backend.app.domain.timeutils import minutes_overlap, time_to_minutes

MIN_OFFER_MINUTES = 30


class FailurePolicy(str, enum.Enum):
    """What to report when existing bookings cannot be loaded."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class OccupiedInterval:
    kind: str  # "booking" or "block"
    id: int
    start_time: str
    start: int
    end: int
    guest_name: str | None = None
    party_size: int = 0
    # Tables the interval occupies; empty on a block means the whole venue
    table_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ConflictingBooking:
    id: int
    guest_name: str | None
    start_time: str
    party_size: int
    kind: str = "booking"


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    max_available_duration: int
    available_minutes: int | None = None
    floor_applied: bool = False
    next_booking_time: str | None = None
    conflicting_booking: ConflictingBooking | None = None
    degraded: bool = False


def booking_interval(
    booking_id: int,
    booking_time: str,
    duration_minutes: int | None,
    guest_name: str | None,
    party_size: int,
    table_id: int | None = None,
) -> OccupiedInterval:
    start = time_to_minutes(booking_time)
    return OccupiedInterval(
        kind="booking",
        id=booking_id,
        start_time=booking_time[:5],
        start=start,
        end=start + (duration_minutes or DEFAULT_DURATION_MINUTES),
        guest_name=guest_name,
        party_size=party_size,
        table_ids=(table_id,) if table_id is not None else (),
    )


def block_interval(
    block_id: int,
    start_time: str,
    end_time: str,
    reason: str | None = None,
    table_ids: Iterable[int] | None = None,
) -> OccupiedInterval:
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    if end <= start:
        # A block ending at or before its start runs to the end of the day.
        end = 24 * 60
    return OccupiedInterval(
        kind="block",
        id=block_id,
        start_time=start_time[:5],
        start=start,
        end=end,
        guest_name=reason,
        table_ids=tuple(table_ids or ()),
    )


def check_conflicts(
    occupied: Iterable[OccupiedInterval],
    start_time: str,
    requested_duration: int,
    min_offer: int = MIN_OFFER_MINUTES,
) -> ConflictResult:
    """Decide whether ``[start_time, start_time + requested_duration)`` is free.

    When a later interval cuts the window short, ``max_available_duration``
    is the gap before it, floored at ``min_offer``. The floor can exceed the
    real gap; ``floor_applied`` and ``available_minutes`` report that, and
    ``has_conflict`` stays true regardless.

    When the table is already occupied at ``start_time`` there is no gap to
    offer and ``max_available_duration`` is 0.
    """
    start = time_to_minutes(start_time)
    end = start + requested_duration

    for interval in sorted(occupied, key=lambda item: (item.start, item.end)):
        if not minutes_overlap(start, end, interval.start, interval.end):
            continue

        conflicting = ConflictingBooking(
            id=interval.id,
            guest_name=interval.guest_name,
            start_time=interval.start_time,
            party_size=interval.party_size,
            kind=interval.kind,
        )
        if interval.start <= start:
            return ConflictResult(
                has_conflict=True,
                max_available_duration=0,
                available_minutes=0,
                next_booking_time=interval.start_time,
                conflicting_booking=conflicting,
            )

        gap = interval.start - start
        return ConflictResult(
            has_conflict=True,
            max_available_duration=max(min_offer, gap),
            available_minutes=gap,
            floor_applied=gap < min_offer,
            next_booking_time=interval.start_time,
            conflicting_booking=conflicting,
        )

    return ConflictResult(
        has_conflict=False,
        max_available_duration=requested_duration,
        available_minutes=requested_duration,
    )


def degraded_result(policy: FailurePolicy, requested_duration: int) -> ConflictResult:
    if policy is FailurePolicy.CLOSED:
        return ConflictResult(has_conflict=True, max_available_duration=0, available_minutes=0, degraded=True)
    return ConflictResult(
        has_conflict=False,
        max_available_duration=requested_duration,
        degraded=True,
    )
