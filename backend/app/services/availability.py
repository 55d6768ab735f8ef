import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import settings
from backend.app.db.repositories import VenueRepository
from backend.app.domain.conflicts import (
    ConflictResult,
    FailurePolicy,
    OccupiedInterval,
    check_conflicts,
    degraded_result,
)
from backend.app.domain.slots import Slot, generate_time_slots, list_slots
from backend.app.domain.timeutils import time_to_minutes
from backend.app.services.durations import ServiceNotFound, calculate_booking_duration


logger = logging.getLogger(__name__)


def configured_policy() -> FailurePolicy:
    return FailurePolicy(settings.AVAILABILITY_FAILURE_POLICY)


async def load_occupied(
    repo: VenueRepository,
    table_ids: Sequence[int],
    booking_date: date,
) -> list[OccupiedInterval]:
    bookings = await repo.fetch_active_bookings(table_ids, booking_date)
    blocks = await repo.fetch_blocks(booking_date, table_ids)
    return bookings + blocks


async def check_walk_in_conflicts(
    repo: VenueRepository,
    table_ids: Sequence[int],
    booking_date: date,
    start_time: str,
    requested_duration: int,
    policy: FailurePolicy | None = None,
) -> ConflictResult:
    """Check whether the tables are free for the requested window.

    Malformed times raise ``InvalidTimeFormat``. Persistence errors are
    logged and resolved according to ``policy``.
    """
    time_to_minutes(start_time)
    if not table_ids:
        return ConflictResult(has_conflict=False, max_available_duration=requested_duration)

    policy = policy or configured_policy()
    try:
        occupied = await load_occupied(repo, table_ids, booking_date)
    except SQLAlchemyError:
        logger.exception(
            "Failed to load bookings for venue %s tables %s on %s; failing %s",
            repo.venue_id,
            list(table_ids),
            booking_date,
            policy.value,
        )
        return degraded_result(policy, requested_duration)

    result = check_conflicts(occupied, start_time, requested_duration, settings.MIN_OFFER_DURATION)
    if result.has_conflict:
        logger.info(
            "Conflict for venue %s tables %s at %s %s: %s minutes available",
            repo.venue_id,
            list(table_ids),
            booking_date,
            start_time,
            result.max_available_duration,
        )
    return result


class PartySizeInvalid(ValueError):
    def __init__(self, min_guests: int, max_guests: int):
        super().__init__(f"This service requires between {min_guests} and {max_guests} guests")
        self.min_guests = min_guests
        self.max_guests = max_guests


@dataclass(frozen=True)
class SlotAvailability:
    duration_minutes: int
    slots: list[Slot]
    degraded: bool = False


async def list_available_slots(
    repo: VenueRepository,
    service_id: str,
    booking_date: date,
    party_size: int,
    policy: FailurePolicy | None = None,
) -> SlotAvailability:
    """Start times a service offers on ``booking_date`` and whether a table is free at each.

    Raises ``ServiceNotFound`` when the service is missing, inactive or not
    bookable online, and ``PartySizeInvalid`` outside its guest range. When
    bookings or blocks cannot be loaded the result is degraded: every slot is
    offered when failing open and none when failing closed.
    """
    guests = await repo.fetch_bookable_service(service_id)
    if guests is None:
        raise ServiceNotFound(service_id)
    if not guests.min_guests <= party_size <= guests.max_guests:
        raise PartySizeInvalid(guests.min_guests, guests.max_guests)

    duration = await calculate_booking_duration(repo, service_id, party_size)
    tables = await repo.fetch_bookable_tables(party_size)
    if not tables:
        logger.info("No bookable tables for %s guests at venue %s", party_size, repo.venue_id)
        return SlotAvailability(duration_minutes=duration, slots=[])

    windows = await repo.fetch_booking_windows(service_id)
    policy = policy or configured_policy()
    try:
        occupied = await load_occupied(repo, [table.id for table in tables], booking_date)
    except SQLAlchemyError:
        logger.exception(
            "Failed to load bookings for venue %s on %s; failing %s", repo.venue_id, booking_date, policy.value
        )
        available = policy is FailurePolicy.OPEN
        slots = [Slot(time=time, available=available) for time in generate_time_slots(windows, booking_date)]
        return SlotAvailability(duration_minutes=duration, slots=slots, degraded=True)

    slots = list_slots(windows, occupied, tables, booking_date, duration, party_size)
    logger.debug(
        "Service %s on %s for %s guests: %s of %s slots free",
        service_id,
        booking_date,
        party_size,
        sum(slot.available for slot in slots),
        len(slots),
    )
    return SlotAvailability(duration_minutes=duration, slots=slots)
