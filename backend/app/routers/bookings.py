from datetime import datetime, time, timezone

from asyncpg import exceptions as asyncpg_exc
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import DBAPIError

from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings
from backend.app.db.repositories import SweepRepository
from backend.app.domain.refunds import evaluate_refund_eligibility
from backend.app.domain.timeutils import InvalidTimeFormat
from backend.app.routers.deps import get_sweep_repository
from backend.app.routers.schemas import (
    CommitBookingIn,
    CommitBookingOut,
    PaymentQuoteOut,
    RefundEligibilityOut,
)
from backend.app.services.bookings import BookingRequest, SlotUnavailable, TableUnavailable, commit_booking


router = APIRouter()


@router.post("/bookings", response_model=CommitBookingOut, status_code=status.HTTP_201_CREATED)
async def commit_endpoint(
    payload: CommitBookingIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> CommitBookingOut:
    if redis_module.redis_client is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable")

    key = redis_module.hold_key(
        payload.venue_id,
        payload.table_id,
        payload.booking_date.isoformat(),
        payload.booking_time,
    )
    hold_acquired = await redis_module.redis_client.set(
        key,
        "1",
        nx=True,
        px=settings.HOLD_TTL_SECONDS * 1000,
    )
    if not hold_acquired:
        raise HTTPException(status.HTTP_409_CONFLICT, detail="Slot temporarily held by another request")

    request = BookingRequest(
        table_id=payload.table_id,
        booking_date=payload.booking_date,
        booking_time=payload.booking_time,
        party_size=payload.party_size,
        guest_name=payload.guest_name,
        service_id=payload.service_id,
        duration_minutes=payload.duration_minutes,
        email=payload.email,
        phone=payload.phone,
        notes=payload.notes,
    )

    try:
        async with sweep.transaction():
            committed = await commit_booking(sweep.for_venue(payload.venue_id), request)
    except InvalidTimeFormat as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except TableUnavailable as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SlotUnavailable as exc:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail={
                "message": "Slot already booked",
                "max_available_duration": exc.result.max_available_duration,
                "next_booking_time": exc.result.next_booking_time,
            },
        ) from exc
    except DBAPIError as exc:
        orig = getattr(exc, "orig", exc)
        cause = getattr(orig, "__cause__", None)
        overlap_errors = (asyncpg_exc.ExclusionViolationError, asyncpg_exc.UniqueViolationError)
        if isinstance(orig, overlap_errors) or isinstance(cause, overlap_errors) or "bookings_no_overlap" in str(orig):
            raise HTTPException(status.HTTP_409_CONFLICT, detail="Slot already booked") from exc
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error") from exc
    finally:
        await redis_module.redis_client.delete(key)

    payment = committed.payment
    return CommitBookingOut(
        id=committed.id,
        status=committed.status,
        duration_minutes=committed.duration_minutes,
        payment=PaymentQuoteOut(
            should_charge=payment.should_charge,
            amount=payment.amount,
            description=payment.description,
            charge_type=payment.charge_type,
            refund_window_hours=payment.refund_window_hours,
            auto_refund_enabled=payment.auto_refund_enabled,
        ),
    )


@router.get("/bookings/{booking_id}/refund-eligibility", response_model=RefundEligibilityOut)
async def refund_eligibility(
    booking_id: int,
    venue_id: str = Query(..., min_length=1),
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> RefundEligibilityOut:
    repo = sweep.for_venue(venue_id)
    booking = await repo.fetch_booking(booking_id)
    if booking is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Booking not found")

    service = await repo.fetch_service_settings(booking.service_id) if booking.service_id else None
    amount = await repo.fetch_succeeded_payment_amount(booking_id)

    # Booking times are venue wall-clock; compared as UTC.
    start = datetime.combine(booking.booking_date, time.fromisoformat(booking.booking_time), tzinfo=timezone.utc)
    eligibility = evaluate_refund_eligibility(
        start,
        datetime.now(timezone.utc),
        service.refund_window_hours if service else None,
        amount,
    )
    return RefundEligibilityOut(
        is_eligible=eligibility.is_eligible,
        hours_until_booking=eligibility.hours_until_booking,
        refund_window_hours=eligibility.refund_window_hours,
        reason=eligibility.reason,
        payment_amount=eligibility.payment_amount,
        has_payment=eligibility.has_payment,
    )
