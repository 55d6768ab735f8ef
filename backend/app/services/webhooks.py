import logging
from datetime import datetime, timezone
from typing import Any

from backend.app.db.repositories import SweepRepository
from backend.app.services.notifications import EmailNotifier
from backend.app.services.payment_status import apply_payment_success


logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "stripe_webhook"

SUCCEEDED_EVENT = "payment_intent.succeeded"
FAILED_EVENT = "payment_intent.payment_failed"


async def handle_stripe_event(
    sweep: SweepRepository,
    notifier: EmailNotifier,
    event: dict[str, Any],
    *,
    now: datetime | None = None,
) -> str:
    """Apply a verified Stripe event.

    Returns one of "ignored", "no_pending_payment", "succeeded" or "declined".
    """
    now = now or datetime.now(timezone.utc)
    event_type = event.get("type")
    if event_type not in (SUCCEEDED_EVENT, FAILED_EVENT):
        logger.info("Unhandled Stripe event type: %s", event_type)
        return "ignored"

    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")
    if not intent_id:
        logger.warning("Stripe event %s carries no payment intent id", event.get("id"))
        return "ignored"

    async with sweep.transaction():
        payment = await sweep.find_pending_payment(intent_id)
        if payment is None:
            logger.info("No pending payment for intent %s; already reconciled or unknown", intent_id)
            return "no_pending_payment"

        repo = sweep.for_venue(payment.venue_id)
        if event_type == SUCCEEDED_EVENT:
            method_types = intent.get("payment_method_types") or []
            applied = await apply_payment_success(
                repo,
                payment,
                payment_method_type=method_types[0] if method_types else None,
                source=WEBHOOK_SOURCE,
                now=now,
            )
        else:
            # A decline is not final: the guest may retry the same intent.
            # Reconciliation or the timeout sweeper settles the booking.
            reason = (intent.get("last_payment_error") or {}).get("message") or "Payment failed"
            applied = await repo.record_payment_decline(payment.id, reason, now)
            if applied:
                logger.info(
                    "Payment %s declined for booking %s (%s); awaiting retry",
                    payment.id,
                    payment.booking_id,
                    intent.get("status"),
                )

    if not applied:
        return "no_pending_payment"

    if event_type == SUCCEEDED_EVENT:
        await notifier.send_booking_confirmation(payment.booking_id, payment.guest_email, payment.venue_id)
        return "succeeded"
    return "declined"
