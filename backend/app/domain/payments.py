"""Booking charge rules.

Service settings take precedence. When the service does not require payment
but the venue has venue-wide charging active, the venue rules apply instead.
Amounts are in minor currency units (pence / cents).
"""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_REFUND_WINDOW_HOURS = 24
VENUE_DEFAULT_MINIMUM_GUESTS = 8
SERVICE_DEFAULT_MINIMUM_GUESTS = 1

ALL_RESERVATIONS = "all_reservations"
LARGE_GROUPS = "large_groups"
NO_CHARGE = "none"
CHARGE_ERROR = "error"


@dataclass(frozen=True)
class ServiceChargeSettings:
    title: str
    requires_payment: bool
    charge_type: str | None = None
    charge_amount_per_guest: int | None = None
    minimum_guests_for_charge: int | None = None
    refund_window_hours: int | None = None
    auto_refund_enabled: bool | None = None


@dataclass(frozen=True)
class VenueChargeSettings:
    is_active: bool
    charge_type: str | None = None
    charge_amount_per_guest: int | None = None
    minimum_guests_for_charge: int | None = None
    test_mode: bool = False


@dataclass(frozen=True)
class PaymentCalculation:
    should_charge: bool
    amount: int
    description: str
    charge_type: str
    refund_window_hours: int = DEFAULT_REFUND_WINDOW_HOURS
    auto_refund_enabled: bool = False


NO_PAYMENT = PaymentCalculation(False, 0, "No payment required", NO_CHARGE)
CALCULATION_ERROR = PaymentCalculation(False, 0, "Payment calculation error", CHARGE_ERROR)


def _venue_charge(venue: VenueChargeSettings, party_size: int) -> PaymentCalculation:
    per_guest = venue.charge_amount_per_guest or 0
    if venue.charge_type == ALL_RESERVATIONS:
        return PaymentCalculation(True, per_guest * party_size, f"Booking fee for {party_size} guests", ALL_RESERVATIONS)
    if venue.charge_type == LARGE_GROUPS:
        minimum = venue.minimum_guests_for_charge or VENUE_DEFAULT_MINIMUM_GUESTS
        if party_size >= minimum:
            return PaymentCalculation(
                True, per_guest * party_size, f"Large group fee for {party_size} guests", LARGE_GROUPS
            )
    return NO_PAYMENT


def _service_charge(service: ServiceChargeSettings, party_size: int) -> PaymentCalculation:
    charge_type = service.charge_type or ALL_RESERVATIONS
    per_guest = service.charge_amount_per_guest or 0
    refund_window = service.refund_window_hours or DEFAULT_REFUND_WINDOW_HOURS
    auto_refund = bool(service.auto_refund_enabled)

    if charge_type == LARGE_GROUPS:
        minimum = service.minimum_guests_for_charge or SERVICE_DEFAULT_MINIMUM_GUESTS
        if party_size < minimum:
            return PaymentCalculation(False, 0, "No payment required", NO_CHARGE, refund_window, auto_refund)
        description = f"{service.title} large group fee for {party_size} guests"
    else:
        # all_reservations, per_guest and unknown values all charge every booking
        description = f"{service.title} booking fee for {party_size} guests"

    return PaymentCalculation(True, per_guest * party_size, description, charge_type, refund_window, auto_refund)


def calculate_charge(
    service: ServiceChargeSettings | None,
    venue: VenueChargeSettings | None,
    party_size: int,
    *,
    service_requested: bool = True,
) -> PaymentCalculation:
    """Resolve the charge for a booking of ``party_size`` guests.

    ``service_requested`` is False when the booking has no service at all, in
    which case only the venue configuration is consulted.
    """
    venue_active = venue is not None and venue.is_active

    if not service_requested:
        return _venue_charge(venue, party_size) if venue_active else NO_PAYMENT

    if service is not None and service.requires_payment:
        return _service_charge(service, party_size)

    if venue_active:
        return _venue_charge(venue, party_size)
    return NO_PAYMENT
