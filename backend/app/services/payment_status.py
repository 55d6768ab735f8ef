"""Apply the processor's verdict on a pending payment.

Shared by the reconciliation job and the Stripe webhook. Every write is
guarded by the payment still being ``pending``, so whichever path lands
first wins and the other becomes a no-op.
"""
import logging
from datetime import datetime

from backend.app.db.repositories import AuditEntry, PendingPayment, VenueRepository
from backend.app.domain.status import CANCELLED, CONFIRMED, PENDING_PAYMENT


logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({"succeeded"})
FAILURE_STATUSES = frozenset({"failed", "canceled"})


async def apply_payment_success(
    repo: VenueRepository,
    payment: PendingPayment,
    *,
    payment_method_type: str | None,
    source: str,
    now: datetime,
) -> bool:
    """Mark the payment succeeded and confirm its booking. False if already settled."""
    if not await repo.mark_payment_succeeded(payment.id, payment_method_type, now):
        logger.info("Payment %s already settled, skipping", payment.id)
        return False

    if await repo.transition_booking(payment.booking_id, CONFIRMED, now, expected=(PENDING_PAYMENT,)):
        await repo.insert_audit(
            AuditEntry(
                booking_id=payment.booking_id,
                change_type=f"{source}_success",
                old_value=PENDING_PAYMENT,
                new_value=CONFIRMED,
                notes="Booking confirmed after successful payment",
                source_type=source,
                source_details={
                    "payment_intent_id": payment.payment_intent_id,
                    "processed_at": now.isoformat(),
                },
            )
        )
    else:
        logger.warning(
            "Payment %s succeeded but booking %s is no longer awaiting payment",
            payment.id,
            payment.booking_id,
        )
    return True


async def apply_payment_failure(
    repo: VenueRepository,
    payment: PendingPayment,
    *,
    processor_status: str,
    reason: str,
    source: str,
    now: datetime,
) -> bool:
    """Mark the payment failed and cancel its booking. False if already settled."""
    if not await repo.mark_payment_failed(payment.id, reason, now):
        logger.info("Payment %s already settled, skipping", payment.id)
        return False

    if await repo.transition_booking(payment.booking_id, CANCELLED, now, expected=(PENDING_PAYMENT,)):
        await repo.insert_audit(
            AuditEntry(
                booking_id=payment.booking_id,
                change_type=f"{source}_failure",
                old_value=PENDING_PAYMENT,
                new_value=CANCELLED,
                notes=f"Booking cancelled after payment failure - Stripe status: {processor_status}",
                source_type=source,
                source_details={
                    "stripe_status": processor_status,
                    "payment_intent_id": payment.payment_intent_id,
                    "reconciled_at": now.isoformat(),
                },
            )
        )
    return True
