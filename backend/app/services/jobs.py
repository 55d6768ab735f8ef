"""Scheduled sweeps triggered by the external cron.

Both jobs walk their batch sequentially. Each item runs in its own
transaction; an error on one item is logged and the batch carries on.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from backend.app.core.config import settings
from backend.app.db.repositories import AuditEntry, SweepRepository
from backend.app.domain.status import CANCELLED, PENDING_PAYMENT
from backend.app.services.notifications import EmailNotifier
from backend.app.services.payment_status import (
    FAILURE_STATUSES,
    SUCCESS_STATUSES,
    apply_payment_failure,
    apply_payment_success,
)
from backend.app.services.stripe_gateway import StripeGateway


logger = logging.getLogger(__name__)

RECONCILIATION_SOURCE = "payment_reconciliation"
TIMEOUT_SOURCE = "automated_timeout_handler"


@dataclass
class JobResult:
    examined: int = 0
    processed: int = 0
    errors: int = 0


async def reconcile_pending_payments(
    sweep: SweepRepository,
    gateway: StripeGateway,
    notifier: EmailNotifier,
    *,
    now: datetime | None = None,
    threshold_minutes: int | None = None,
) -> JobResult:
    """Settle payments still pending after the webhook should have arrived."""
    now = now or datetime.now(timezone.utc)
    threshold = threshold_minutes if threshold_minutes is not None else settings.RECONCILIATION_THRESHOLD_MINUTES
    cutoff = now - timedelta(minutes=threshold)

    async with sweep.transaction():
        payments = await sweep.fetch_stale_pending_payments(cutoff)

    result = JobResult(examined=len(payments))
    logger.info("Found %s payments to reconcile", len(payments))

    for payment in payments:
        if not payment.payment_intent_id:
            logger.warning("Payment %s has no payment intent id, skipping", payment.id)
            continue

        try:
            repo = sweep.for_venue(payment.venue_id)
            async with sweep.transaction():
                venue = await repo.fetch_venue_settings()
            intent = await gateway.retrieve_intent(
                payment.payment_intent_id,
                test_mode=bool(venue and venue.test_mode),
            )
            logger.info(
                "Stripe status %s for payment %s (booking %s)",
                intent.status,
                payment.id,
                payment.booking_reference or payment.booking_id,
            )

            if intent.status in SUCCESS_STATUSES:
                async with sweep.transaction():
                    applied = await apply_payment_success(
                        repo,
                        payment,
                        payment_method_type=intent.payment_method_type,
                        source=RECONCILIATION_SOURCE,
                        now=now,
                    )
                if applied:
                    result.processed += 1
                    await notifier.send_booking_confirmation(payment.booking_id, payment.guest_email, payment.venue_id)
            elif intent.status in FAILURE_STATUSES:
                async with sweep.transaction():
                    applied = await apply_payment_failure(
                        repo,
                        payment,
                        processor_status=intent.status,
                        reason=f"Stripe status: {intent.status}",
                        source=RECONCILIATION_SOURCE,
                        now=now,
                    )
                if applied:
                    result.processed += 1
            # Anything else (processing, requires_action, ...) is retried on the next run.
        except Exception:
            result.errors += 1
            logger.exception("Error reconciling payment %s", payment.id)

    logger.info("Reconciled %s of %s payments (%s errors)", result.processed, result.examined, result.errors)
    return result


async def cancel_expired_pending_bookings(
    sweep: SweepRepository,
    *,
    now: datetime | None = None,
    timeout_minutes: int | None = None,
) -> JobResult:
    """Cancel bookings whose payment was never completed."""
    now = now or datetime.now(timezone.utc)
    timeout = timeout_minutes if timeout_minutes is not None else settings.PAYMENT_TIMEOUT_MINUTES
    cutoff = now - timedelta(minutes=timeout)
    reason = f"Payment timeout - booking cancelled after {timeout} minutes"

    async with sweep.transaction():
        bookings = await sweep.fetch_expired_pending_bookings(cutoff)

    result = JobResult(examined=len(bookings))
    logger.info("Found %s timed out bookings", len(bookings))

    for booking in bookings:
        try:
            repo = sweep.for_venue(booking.venue_id)
            async with sweep.transaction():
                if not await repo.transition_booking(booking.id, CANCELLED, now, expected=(PENDING_PAYMENT,)):
                    logger.info("Booking %s left pending_payment before timeout, skipping", booking.id)
                    continue
                await repo.fail_pending_payments(booking.id, reason, now)
                await repo.insert_audit(
                    AuditEntry(
                        booking_id=booking.id,
                        change_type="payment_timeout_cancellation",
                        old_value=PENDING_PAYMENT,
                        new_value=CANCELLED,
                        notes=f"Booking automatically cancelled due to payment timeout ({timeout} minutes)",
                        source_type=TIMEOUT_SOURCE,
                        source_details={
                            "timeout_minutes": timeout,
                            "processed_at": now.isoformat(),
                            "reason": "payment_timeout",
                        },
                    )
                )
            result.processed += 1
            logger.info("Cancelled booking %s due to payment timeout", booking.booking_reference or booking.id)
        except Exception:
            result.errors += 1
            logger.exception("Error processing timeout for booking %s", booking.id)

    logger.info("Processed %s timed out bookings (%s errors)", result.processed, result.errors)
    return result
