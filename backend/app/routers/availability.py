from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from backend.app.db.repositories import SweepRepository
from backend.app.domain.durations import DurationRule, DurationRuleError
from backend.app.domain.timeutils import InvalidTimeFormat
from backend.app.routers.deps import get_sweep_repository
from backend.app.routers.schemas import (
    ConflictingBookingOut,
    DurationIn,
    DurationOut,
    DurationRulesIn,
    DurationRulesOut,
    SlotOut,
    SlotsIn,
    SlotsOut,
    WalkInCheckIn,
    WalkInCheckOut,
)
from backend.app.services.availability import PartySizeInvalid, check_walk_in_conflicts, list_available_slots
from backend.app.services.durations import (
    ServiceNotFound,
    calculate_booking_duration,
    default_walk_in_duration,
    save_duration_rules,
)

router = APIRouter()


@router.post("/availability/walk-in", response_model=WalkInCheckOut)
async def check_walk_in(
    payload: WalkInCheckIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> WalkInCheckOut:
    repo = sweep.for_venue(payload.venue_id)

    duration = payload.duration_minutes
    if duration is None and payload.service_id:
        duration = await calculate_booking_duration(repo, payload.service_id, payload.party_size)
    if duration is None:
        duration = await default_walk_in_duration(repo)

    try:
        result = await check_walk_in_conflicts(
            repo,
            payload.table_ids,
            payload.booking_date,
            payload.start_time,
            duration,
        )
    except InvalidTimeFormat as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    conflicting = result.conflicting_booking
    return WalkInCheckOut(
        has_conflict=result.has_conflict,
        requested_duration=duration,
        max_available_duration=result.max_available_duration,
        available_minutes=result.available_minutes,
        floor_applied=result.floor_applied,
        degraded=result.degraded,
        next_booking_time=result.next_booking_time,
        conflicting_booking=(
            ConflictingBookingOut(
                id=conflicting.id,
                guest_name=conflicting.guest_name,
                start_time=conflicting.start_time,
                party_size=conflicting.party_size,
                kind=conflicting.kind,
            )
            if conflicting
            else None
        ),
    )


@router.post("/availability/slots", response_model=SlotsOut)
async def available_slots(
    payload: SlotsIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> SlotsOut:
    repo = sweep.for_venue(payload.venue_id)
    try:
        result = await list_available_slots(repo, payload.service_id, payload.booking_date, payload.party_size)
    except ServiceNotFound as exc:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, detail="Service not found or not available for online booking"
        ) from exc
    except PartySizeInvalid as exc:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, detail={"code": "party_size_invalid", "message": str(exc)}
        ) from exc

    return SlotsOut(
        service_id=payload.service_id,
        booking_date=payload.booking_date,
        party_size=payload.party_size,
        duration_minutes=result.duration_minutes,
        degraded=result.degraded,
        slots=[SlotOut(time=slot.time, available=slot.available) for slot in result.slots],
    )


@router.post("/availability/duration", response_model=DurationOut)
async def booking_duration(
    payload: DurationIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> DurationOut:
    repo = sweep.for_venue(payload.venue_id)
    duration = await calculate_booking_duration(repo, payload.service_id, payload.party_size)
    return DurationOut(duration_minutes=duration)


@router.put("/services/{service_id}/duration-rules", response_model=DurationRulesOut)
async def replace_duration_rules(
    service_id: str,
    payload: DurationRulesIn,
    sweep: SweepRepository = Depends(get_sweep_repository),
) -> DurationRulesOut:
    rules = [DurationRule(rule.min_guests, rule.max_guests, rule.duration_minutes) for rule in payload.rules]
    try:
        async with sweep.transaction():
            await save_duration_rules(sweep.for_venue(payload.venue_id), service_id, rules)
    except DurationRuleError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.problems) from exc
    except ServiceNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Service not found") from exc
    return DurationRulesOut(service_id=service_id, rules=payload.rules)
