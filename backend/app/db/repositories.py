"""Raw SQL access to the booking tables.

Tenant data is only reachable through ``VenueRepository``, which is bound to
one venue id at construction; every statement it issues filters on that id.
``SweepRepository`` runs the cross-venue queries needed by scheduled jobs and
webhooks, and hands out a ``VenueRepository`` for each row it returns.
"""
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.conflicts import OccupiedInterval, block_interval, booking_interval
from backend.app.domain.durations import DurationRule, parse_duration_rules
from backend.app.domain.payments import ServiceChargeSettings, VenueChargeSettings
from backend.app.domain.slots import BookableTable, BookingWindow
from backend.app.domain.status import (
    ACTIVE_STATUSES,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_SUCCEEDED,
    PENDING_PAYMENT,
    predecessors,
)


@dataclass(frozen=True)
class PendingPayment:
    id: int
    booking_id: int
    venue_id: str
    payment_intent_id: str | None
    booking_reference: str | None = None
    guest_email: str | None = None


@dataclass(frozen=True)
class ExpiredBooking:
    id: int
    venue_id: str
    booking_reference: str | None = None
    guest_name: str | None = None


@dataclass(frozen=True)
class BookingSummary:
    id: int
    booking_date: date
    booking_time: str
    service_id: str | None
    status: str
    email: str | None


@dataclass
class AuditEntry:
    booking_id: int
    change_type: str
    old_value: str
    new_value: str
    source_type: str
    notes: str | None = None
    field_name: str = "status"
    changed_by: str = "system"
    source_details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NewBooking:
    table_id: int | None
    booking_date: date
    booking_time: str
    duration_minutes: int
    party_size: int
    guest_name: str
    status: str
    service_id: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class GuestRange:
    min_guests: int
    max_guests: int


def _hhmm(value: time | str) -> str:
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)[:5]


class VenueRepository:
    def __init__(self, session: AsyncSession, venue_id: str):
        if not venue_id:
            raise ValueError("venue_id is required")
        self.session = session
        self.venue_id = venue_id

    # -- availability ----------------------------------------------------

    async def fetch_active_bookings(self, table_ids: Sequence[int], booking_date: date) -> list[OccupiedInterval]:
        query = text(
            """
            SELECT id, table_id, booking_time, duration_minutes, guest_name, party_size
            FROM bookings
            WHERE venue_id = :venue_id
              AND booking_date = :booking_date
              AND table_id IN :table_ids
              AND status IN :statuses
            ORDER BY booking_time
            """
        ).bindparams(bindparam("table_ids", expanding=True), bindparam("statuses", expanding=True))
        result = await self.session.execute(
            query,
            {
                "venue_id": self.venue_id,
                "booking_date": booking_date,
                "table_ids": list(table_ids),
                "statuses": list(ACTIVE_STATUSES),
            },
        )
        return [
            booking_interval(
                row.id, _hhmm(row.booking_time), row.duration_minutes, row.guest_name, row.party_size, row.table_id
            )
            for row in result
        ]

    async def fetch_blocks(self, booking_date: date, table_ids: Sequence[int]) -> list[OccupiedInterval]:
        """Blocks on ``booking_date`` covering any of ``table_ids`` or the whole venue."""
        result = await self.session.execute(
            text(
                """
                SELECT id, start_time, end_time, reason, table_ids
                FROM blocks
                WHERE venue_id = :venue_id
                  AND date = :booking_date
                  AND (cardinality(table_ids) = 0 OR table_ids && CAST(:table_ids AS bigint[]))
                ORDER BY start_time
                """
            ),
            {"venue_id": self.venue_id, "booking_date": booking_date, "table_ids": list(table_ids)},
        )
        return [
            block_interval(row.id, _hhmm(row.start_time), _hhmm(row.end_time), row.reason, row.table_ids)
            for row in result
        ]

    async def lock_table(self, table_id: int) -> int | None:
        """Row-lock an active table for the current transaction and return its seat count."""
        result = await self.session.execute(
            text(
                """
                SELECT seats
                FROM tables
                WHERE id = :table_id
                  AND venue_id = :venue_id
                  AND status = 'active'
                FOR UPDATE
                """
            ),
            {"table_id": table_id, "venue_id": self.venue_id},
        )
        return result.scalar_one_or_none()

    async def fetch_bookable_tables(self, min_seats: int) -> list[BookableTable]:
        result = await self.session.execute(
            text(
                """
                SELECT id, seats
                FROM tables
                WHERE venue_id = :venue_id
                  AND status = 'active'
                  AND online_bookable
                  AND seats >= :min_seats
                ORDER BY seats, id
                """
            ),
            {"venue_id": self.venue_id, "min_seats": min_seats},
        )
        return [BookableTable(id=row.id, seats=row.seats) for row in result]

    async def fetch_booking_windows(self, service_id: str) -> list[BookingWindow]:
        result = await self.session.execute(
            text(
                """
                SELECT days, start_time, end_time
                FROM booking_windows
                WHERE service_id = :service_id AND venue_id = :venue_id
                ORDER BY start_time
                """
            ),
            {"service_id": service_id, "venue_id": self.venue_id},
        )
        return [
            BookingWindow(days=tuple(row.days or ()), start_time=_hhmm(row.start_time), end_time=_hhmm(row.end_time))
            for row in result
        ]

    # -- configuration ---------------------------------------------------

    async def fetch_duration_rules(self, service_id: str) -> list[DurationRule] | None:
        result = await self.session.execute(
            text("SELECT duration_rules FROM services WHERE id = :service_id AND venue_id = :venue_id"),
            {"service_id": service_id, "venue_id": self.venue_id},
        )
        row = result.one_or_none()
        if row is None:
            return None
        raw = row.duration_rules
        if isinstance(raw, str):
            raw = json.loads(raw)
        return parse_duration_rules(raw)

    async def fetch_service_guest_limit(self, service_id: str) -> int | None:
        result = await self.session.execute(
            text("SELECT max_guests FROM services WHERE id = :service_id AND venue_id = :venue_id"),
            {"service_id": service_id, "venue_id": self.venue_id},
        )
        return result.scalar_one_or_none()

    async def fetch_bookable_service(self, service_id: str) -> GuestRange | None:
        """Guest range of an active, online-bookable service, or None."""
        result = await self.session.execute(
            text(
                """
                SELECT min_guests, max_guests
                FROM services
                WHERE id = :service_id
                  AND venue_id = :venue_id
                  AND active
                  AND online_bookable
                """
            ),
            {"service_id": service_id, "venue_id": self.venue_id},
        )
        row = result.one_or_none()
        if row is None:
            return None
        return GuestRange(min_guests=row.min_guests, max_guests=row.max_guests)

    async def update_duration_rules(self, service_id: str, rules: Sequence[DurationRule]) -> bool:
        stored = [
            {"minGuests": rule.min_guests, "maxGuests": rule.max_guests, "duration": rule.duration_minutes}
            for rule in rules
        ]
        result = await self.session.execute(
            text(
                """
                UPDATE services
                SET duration_rules = CAST(:rules AS jsonb)
                WHERE id = :service_id AND venue_id = :venue_id
                """
            ),
            {"rules": json.dumps(stored), "service_id": service_id, "venue_id": self.venue_id},
        )
        return result.rowcount > 0

    async def fetch_service_settings(self, service_id: str) -> ServiceChargeSettings | None:
        result = await self.session.execute(
            text(
                """
                SELECT title, requires_payment, charge_type, charge_amount_per_guest,
                       minimum_guests_for_charge, refund_window_hours, auto_refund_enabled
                FROM services
                WHERE id = :service_id AND venue_id = :venue_id
                """
            ),
            {"service_id": service_id, "venue_id": self.venue_id},
        )
        row = result.mappings().one_or_none()
        if row is None:
            return None
        return ServiceChargeSettings(
            title=row["title"],
            requires_payment=bool(row["requires_payment"]),
            charge_type=row["charge_type"],
            charge_amount_per_guest=row["charge_amount_per_guest"],
            minimum_guests_for_charge=row["minimum_guests_for_charge"],
            refund_window_hours=row["refund_window_hours"],
            auto_refund_enabled=row["auto_refund_enabled"],
        )

    async def fetch_venue_settings(self) -> VenueChargeSettings | None:
        result = await self.session.execute(
            text(
                """
                SELECT is_active, test_mode, charge_type, charge_amount_per_guest, minimum_guests_for_charge
                FROM venue_stripe_settings
                WHERE venue_id = :venue_id
                """
            ),
            {"venue_id": self.venue_id},
        )
        row = result.mappings().one_or_none()
        if row is None:
            return None
        return VenueChargeSettings(
            is_active=bool(row["is_active"]),
            test_mode=bool(row["test_mode"]),
            charge_type=row["charge_type"],
            charge_amount_per_guest=row["charge_amount_per_guest"],
            minimum_guests_for_charge=row["minimum_guests_for_charge"],
        )

    async def fetch_setting(self, key: str) -> Any:
        result = await self.session.execute(
            text("SELECT setting_value FROM venue_settings WHERE venue_id = :venue_id AND setting_key = :key"),
            {"venue_id": self.venue_id, "key": key},
        )
        raw = result.scalar_one_or_none()
        # asyncpg hands jsonb back as text
        return json.loads(raw) if isinstance(raw, str) else raw

    # -- bookings --------------------------------------------------------

    async def fetch_booking(self, booking_id: int) -> BookingSummary | None:
        result = await self.session.execute(
            text(
                """
                SELECT id, booking_date, booking_time, service_id, status, email
                FROM bookings
                WHERE id = :booking_id AND venue_id = :venue_id
                """
            ),
            {"booking_id": booking_id, "venue_id": self.venue_id},
        )
        row = result.one_or_none()
        if row is None:
            return None
        return BookingSummary(
            id=row.id,
            booking_date=row.booking_date,
            booking_time=_hhmm(row.booking_time),
            service_id=str(row.service_id) if row.service_id else None,
            status=row.status,
            email=row.email,
        )

    async def insert_booking(self, booking: NewBooking) -> int:
        result = await self.session.execute(
            text(
                """
                INSERT INTO bookings (
                  venue_id, table_id, service_id, booking_date, booking_time, duration_minutes,
                  party_size, guest_name, email, phone, notes, status
                ) VALUES (
                  :venue_id, :table_id, :service_id, :booking_date, :booking_time, :duration,
                  :party_size, :guest_name, :email, :phone, :notes, :status
                )
                RETURNING id
                """
            ),
            {
                "venue_id": self.venue_id,
                "table_id": booking.table_id,
                "service_id": booking.service_id,
                "booking_date": booking.booking_date,
                "booking_time": time.fromisoformat(booking.booking_time),
                "duration": booking.duration_minutes,
                "party_size": booking.party_size,
                "guest_name": booking.guest_name,
                "email": booking.email,
                "phone": booking.phone,
                "notes": booking.notes,
                "status": booking.status,
            },
        )
        return result.scalar_one()

    async def transition_booking(
        self,
        booking_id: int,
        new_status: str,
        now: datetime,
        expected: Sequence[str] | None = None,
    ) -> bool:
        """Move a booking to ``new_status`` if its current status allows it.

        ``expected`` narrows the statuses the booking may currently be in.
        """
        allowed = [status for status in predecessors(new_status) if expected is None or status in expected]
        if not allowed:
            return False
        query = text(
            """
            UPDATE bookings
            SET status = :new_status, updated_at = :now
            WHERE id = :booking_id
              AND venue_id = :venue_id
              AND status IN :allowed
            """
        ).bindparams(bindparam("allowed", expanding=True))
        result = await self.session.execute(
            query,
            {
                "new_status": new_status,
                "now": now,
                "booking_id": booking_id,
                "venue_id": self.venue_id,
                "allowed": allowed,
            },
        )
        return result.rowcount > 0

    # -- payments --------------------------------------------------------

    async def fetch_succeeded_payment_amount(self, booking_id: int) -> int | None:
        result = await self.session.execute(
            text(
                """
                SELECT p.amount_cents
                FROM booking_payments p
                JOIN bookings b ON b.id = p.booking_id
                WHERE p.booking_id = :booking_id
                  AND b.venue_id = :venue_id
                  AND p.status = :succeeded
                """
            ),
            {"booking_id": booking_id, "venue_id": self.venue_id, "succeeded": PAYMENT_SUCCEEDED},
        )
        return result.scalar_one_or_none()

    async def mark_payment_succeeded(self, payment_id: int, payment_method_type: str | None, now: datetime) -> bool:
        result = await self.session.execute(
            text(
                """
                UPDATE booking_payments p
                SET status = :succeeded, payment_method_type = :method, processed_at = :now, updated_at = :now
                FROM bookings b
                WHERE p.id = :payment_id
                  AND p.booking_id = b.id
                  AND b.venue_id = :venue_id
                  AND p.status = :pending
                """
            ),
            {
                "succeeded": PAYMENT_SUCCEEDED,
                "pending": PAYMENT_PENDING,
                "method": payment_method_type,
                "now": now,
                "payment_id": payment_id,
                "venue_id": self.venue_id,
            },
        )
        return result.rowcount > 0

    async def record_payment_decline(self, payment_id: int, reason: str, now: datetime) -> bool:
        """Note a declined attempt on a payment that stays pending."""
        result = await self.session.execute(
            text(
                """
                UPDATE booking_payments p
                SET failure_reason = :reason, updated_at = :now
                FROM bookings b
                WHERE p.id = :payment_id
                  AND p.booking_id = b.id
                  AND b.venue_id = :venue_id
                  AND p.status = :pending
                """
            ),
            {
                "pending": PAYMENT_PENDING,
                "reason": reason,
                "now": now,
                "payment_id": payment_id,
                "venue_id": self.venue_id,
            },
        )
        return result.rowcount > 0

    async def mark_payment_failed(self, payment_id: int, reason: str, now: datetime) -> bool:
        result = await self.session.execute(
            text(
                """
                UPDATE booking_payments p
                SET status = :failed, failure_reason = :reason, updated_at = :now
                FROM bookings b
                WHERE p.id = :payment_id
                  AND p.booking_id = b.id
                  AND b.venue_id = :venue_id
                  AND p.status = :pending
                """
            ),
            {
                "failed": PAYMENT_FAILED,
                "pending": PAYMENT_PENDING,
                "reason": reason,
                "now": now,
                "payment_id": payment_id,
                "venue_id": self.venue_id,
            },
        )
        return result.rowcount > 0

    async def fail_pending_payments(self, booking_id: int, reason: str, now: datetime) -> int:
        result = await self.session.execute(
            text(
                """
                UPDATE booking_payments p
                SET status = :failed, failure_reason = :reason, updated_at = :now
                FROM bookings b
                WHERE p.booking_id = :booking_id
                  AND p.booking_id = b.id
                  AND b.venue_id = :venue_id
                  AND p.status = :pending
                """
            ),
            {
                "failed": PAYMENT_FAILED,
                "pending": PAYMENT_PENDING,
                "reason": reason,
                "now": now,
                "booking_id": booking_id,
                "venue_id": self.venue_id,
            },
        )
        return result.rowcount

    # -- audit -----------------------------------------------------------

    async def insert_audit(self, entry: AuditEntry) -> None:
        await self.session.execute(
            text(
                """
                INSERT INTO booking_audit (
                  booking_id, venue_id, change_type, field_name, old_value, new_value,
                  notes, changed_by, source_type, source_details
                ) VALUES (
                  :booking_id, :venue_id, :change_type, :field_name, :old_value, :new_value,
                  :notes, :changed_by, :source_type, CAST(:source_details AS jsonb)
                )
                """
            ),
            {
                "booking_id": entry.booking_id,
                "venue_id": self.venue_id,
                "change_type": entry.change_type,
                "field_name": entry.field_name,
                "old_value": entry.old_value,
                "new_value": entry.new_value,
                "notes": entry.notes,
                "changed_by": entry.changed_by,
                "source_type": entry.source_type,
                "source_details": json.dumps(entry.source_details, default=str),
            },
        )


class SweepRepository:
    """Cross-venue reads for scheduled jobs and processor webhooks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def for_venue(self, venue_id: str) -> VenueRepository:
        return VenueRepository(self.session, venue_id)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self.session.begin():
            yield

    async def fetch_stale_pending_payments(self, cutoff: datetime) -> list[PendingPayment]:
        result = await self.session.execute(
            text(
                """
                SELECT p.id, p.booking_id, p.stripe_payment_intent_id,
                       b.venue_id, b.booking_reference, b.email
                FROM booking_payments p
                JOIN bookings b ON b.id = p.booking_id
                WHERE p.status = :pending
                  AND p.created_at < :cutoff
                ORDER BY p.created_at
                """
            ),
            {"pending": PAYMENT_PENDING, "cutoff": cutoff},
        )
        return [
            PendingPayment(
                id=row.id,
                booking_id=row.booking_id,
                venue_id=str(row.venue_id),
                payment_intent_id=row.stripe_payment_intent_id,
                booking_reference=row.booking_reference,
                guest_email=row.email,
            )
            for row in result
        ]

    async def find_pending_payment(self, payment_intent_id: str) -> PendingPayment | None:
        result = await self.session.execute(
            text(
                """
                SELECT p.id, p.booking_id, p.stripe_payment_intent_id,
                       b.venue_id, b.booking_reference, b.email
                FROM booking_payments p
                JOIN bookings b ON b.id = p.booking_id
                WHERE p.stripe_payment_intent_id = :intent_id
                  AND p.status = :pending
                """
            ),
            {"intent_id": payment_intent_id, "pending": PAYMENT_PENDING},
        )
        row = result.one_or_none()
        if row is None:
            return None
        return PendingPayment(
            id=row.id,
            booking_id=row.booking_id,
            venue_id=str(row.venue_id),
            payment_intent_id=row.stripe_payment_intent_id,
            booking_reference=row.booking_reference,
            guest_email=row.email,
        )

    async def fetch_expired_pending_bookings(self, cutoff: datetime) -> list[ExpiredBooking]:
        result = await self.session.execute(
            text(
                """
                SELECT id, venue_id, booking_reference, guest_name
                FROM bookings
                WHERE status = :pending_payment
                  AND created_at < :cutoff
                ORDER BY created_at
                """
            ),
            {"pending_payment": PENDING_PAYMENT, "cutoff": cutoff},
        )
        return [
            ExpiredBooking(
                id=row.id,
                venue_id=str(row.venue_id),
                booking_reference=row.booking_reference,
                guest_name=row.guest_name,
            )
            for row in result
        ]
