from datetime import date

from pydantic import BaseModel, Field

# "HH:MM", 24-hour clock
TIME_PATTERN = r"^\d{2}:\d{2}$"


class WalkInCheckIn(BaseModel):
    venue_id: str = Field(min_length=1)
    table_ids: list[int] = Field(min_length=1)
    booking_date: date
    start_time: str = Field(pattern=TIME_PATTERN)
    party_size: int = Field(default=2, ge=1, le=50)
    # Falls back to the service's duration rules, then the venue walk-in default
    duration_minutes: int | None = Field(default=None, ge=15, le=720)
    service_id: str | None = None


class ConflictingBookingOut(BaseModel):
    id: int
    guest_name: str | None
    start_time: str
    party_size: int
    kind: str


class WalkInCheckOut(BaseModel):
    has_conflict: bool
    requested_duration: int
    max_available_duration: int
    available_minutes: int | None
    floor_applied: bool
    degraded: bool
    next_booking_time: str | None = None
    conflicting_booking: ConflictingBookingOut | None = None


class SlotsIn(BaseModel):
    venue_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    booking_date: date
    party_size: int = Field(ge=1, le=50)


class SlotOut(BaseModel):
    time: str
    available: bool


class SlotsOut(BaseModel):
    service_id: str
    booking_date: date
    party_size: int
    duration_minutes: int
    degraded: bool = False
    slots: list[SlotOut]


class DurationIn(BaseModel):
    venue_id: str = Field(min_length=1)
    party_size: int = Field(ge=1, le=50)
    service_id: str | None = None


class DurationOut(BaseModel):
    duration_minutes: int


class DurationRuleIn(BaseModel):
    min_guests: int
    max_guests: int
    duration_minutes: int


class DurationRulesIn(BaseModel):
    venue_id: str = Field(min_length=1)
    rules: list[DurationRuleIn]


class DurationRulesOut(BaseModel):
    service_id: str
    rules: list[DurationRuleIn]


class PaymentQuoteIn(BaseModel):
    venue_id: str = Field(min_length=1)
    party_size: int = Field(ge=1, le=50)
    service_id: str | None = None


class PaymentQuoteOut(BaseModel):
    should_charge: bool
    amount: int
    description: str
    charge_type: str
    refund_window_hours: int
    auto_refund_enabled: bool


class CommitBookingIn(BaseModel):
    venue_id: str = Field(min_length=1)
    table_id: int
    booking_date: date
    booking_time: str = Field(pattern=TIME_PATTERN)
    party_size: int = Field(ge=1, le=50)
    guest_name: str = Field(min_length=1, max_length=200)
    service_id: str | None = None
    duration_minutes: int | None = Field(default=None, ge=15, le=720)
    email: str | None = Field(default=None, max_length=254)
    phone: str | None = Field(default=None, max_length=32)
    notes: str | None = Field(default=None, max_length=1024)


class CommitBookingOut(BaseModel):
    id: int
    status: str
    duration_minutes: int
    payment: PaymentQuoteOut


class RefundEligibilityOut(BaseModel):
    is_eligible: bool
    hours_until_booking: int
    refund_window_hours: int
    reason: str
    payment_amount: int
    has_payment: bool


class JobRunOut(BaseModel):
    success: bool = True
    message: str
    examined: int
    processed: int
    errors: int


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
