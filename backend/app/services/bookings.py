import logging
from dataclasses import dataclass
from datetime import date

from backend.app.core.config import settings
from backend.app.db.repositories import NewBooking, VenueRepository
from backend.app.domain.conflicts import ConflictResult, check_conflicts
from backend.app.domain.payments import PaymentCalculation
from backend.app.domain.status import CONFIRMED, PENDING_PAYMENT
from backend.app.services.availability import load_occupied
from backend.app.services.durations import calculate_booking_duration
from backend.app.services.payments import calculate_payment_amount


logger = logging.getLogger(__name__)


class TableUnavailable(Exception):
    pass


class SlotUnavailable(Exception):
    def __init__(self, result: ConflictResult):
        self.result = result
        super().__init__("Slot already booked")


@dataclass(frozen=True)
class BookingRequest:
    table_id: int
    booking_date: date
    booking_time: str
    party_size: int
    guest_name: str
    service_id: str | None = None
    duration_minutes: int | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CommittedBooking:
    id: int
    status: str
    duration_minutes: int
    payment: PaymentCalculation


async def commit_booking(repo: VenueRepository, request: BookingRequest) -> CommittedBooking:
    """Insert a booking after re-checking the table under a row lock.

    Must run inside a transaction. The lock on the table row serialises
    concurrent commits for the same table; the exclusion constraint on
    ``bookings`` backs this up at the storage layer.
    """
    seats = await repo.lock_table(request.table_id)
    if seats is None:
        raise TableUnavailable("Selected table is not available")
    if seats < request.party_size:
        raise TableUnavailable(f"Table seats {seats} guests, party is {request.party_size}")

    duration = request.duration_minutes or await calculate_booking_duration(
        repo, request.service_id, request.party_size
    )

    # Read inside the locked transaction; errors propagate so nothing is written blind.
    occupied = await load_occupied(repo, [request.table_id], request.booking_date)
    conflict = check_conflicts(occupied, request.booking_time, duration, settings.MIN_OFFER_DURATION)
    if conflict.has_conflict:
        raise SlotUnavailable(conflict)

    payment = await calculate_payment_amount(repo, request.service_id, request.party_size)
    status = PENDING_PAYMENT if payment.should_charge else CONFIRMED

    booking_id = await repo.insert_booking(
        NewBooking(
            table_id=request.table_id,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            duration_minutes=duration,
            party_size=request.party_size,
            guest_name=request.guest_name,
            status=status,
            service_id=request.service_id,
            email=request.email,
            phone=request.phone,
            notes=request.notes,
        )
    )
    logger.info(
        "Booking %s created for venue %s table %s at %s %s (%s min, %s)",
        booking_id,
        repo.venue_id,
        request.table_id,
        request.booking_date,
        request.booking_time,
        duration,
        status,
    )
    return CommittedBooking(id=booking_id, status=status, duration_minutes=duration, payment=payment)
