"""Booking and payment status values and the allowed booking transitions."""
from __future__ import annotations

PENDING_PAYMENT = "pending_payment"
CONFIRMED = "confirmed"
SEATED = "seated"
FINISHED = "finished"
CANCELLED = "cancelled"

# Statuses that occupy a table
ACTIVE_STATUSES = (PENDING_PAYMENT, CONFIRMED, SEATED)

PAYMENT_PENDING = "pending"
PAYMENT_SUCCEEDED = "succeeded"
PAYMENT_FAILED = "failed"

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING_PAYMENT: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({SEATED, CANCELLED}),
    SEATED: frozenset({FINISHED}),
    FINISHED: frozenset(),
    CANCELLED: frozenset(),
}


class InvalidTransition(ValueError):
    pass


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def predecessors(new: str) -> tuple[str, ...]:
    """Statuses a booking may be in for a move to ``new`` to be allowed."""
    if new not in TRANSITIONS:
        raise InvalidTransition(f"Unknown booking status: {new}")
    found = tuple(sorted(status for status, targets in TRANSITIONS.items() if new in targets))
    if not found:
        raise InvalidTransition(f"No booking may transition to {new}")
    return found
