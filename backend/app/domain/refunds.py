from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from backend.app.domain.payments import DEFAULT_REFUND_WINDOW_HOURS


@dataclass(frozen=True)
class RefundEligibility:
    is_eligible: bool
    hours_until_booking: int
    refund_window_hours: int
    reason: str
    payment_amount: int
    has_payment: bool


def evaluate_refund_eligibility(
    booking_start: datetime,
    now: datetime,
    refund_window_hours: int | None,
    succeeded_amount: int | None,
) -> RefundEligibility:
    """A paid booking is refundable while at least the window remains before it starts.

    ``succeeded_amount`` is the amount of the succeeded payment, or None when
    the booking has no succeeded payment.
    """
    window = refund_window_hours or DEFAULT_REFUND_WINDOW_HOURS
    # Whole hours, truncated toward zero
    hours_until = int((booking_start - now).total_seconds() / 3600)
    has_payment = succeeded_amount is not None
    within_window = hours_until >= window

    if not has_payment:
        reason = "No payment to refund"
    elif within_window:
        reason = f"Within {window}h cancellation window ({hours_until}h remaining)"
    else:
        reason = f"Outside {window}h cancellation window ({abs(hours_until)}h past deadline)"

    return RefundEligibility(
        is_eligible=has_payment and within_window,
        hours_until_booking=hours_until,
        refund_window_hours=window,
        reason=reason,
        payment_amount=succeeded_amount or 0,
        has_payment=has_payment,
    )
