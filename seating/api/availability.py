"""Availability API endpoints"""

from datetime import date as date_type, time as time_type
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seating.allocation.availability import AvailabilityCalculator
from seating.api.deps import get_calculator
from seating.database import get_db
from seating.schemas.availability import AvailabilityResponse, ResourceResponse, SlotsResponse

router = APIRouter()


@router.get("/check", response_model=AvailabilityResponse)
async def check_availability(
    date: date_type,
    time: time_type,
    party_size: int = Query(..., ge=1),
    duration_minutes: Optional[int] = Query(None, ge=1),
    online_only: bool = True,
    calculator: AvailabilityCalculator = Depends(get_calculator),
    db: AsyncSession = Depends(get_db),
):
    """Check availability; nearby start times are suggested when nothing is free"""
    duration_minutes = duration_minutes or calculator.default_duration_minutes
    result = await calculator.check_availability(
        db, date, time, party_size, duration_minutes, online_only=online_only,
    )

    alternatives = []
    if not result.available:
        alternatives = await calculator.suggest_alternative_times(
            db, date, time, party_size, duration_minutes, online_only=online_only,
        )

    return AvailabilityResponse(
        booking_date=date,
        booking_time=time,
        party_size=party_size,
        duration_minutes=duration_minutes,
        available=result.available,
        candidates=[ResourceResponse.from_resource(resource) for resource in result.candidates],
        reason=result.reason,
        alternative_times=alternatives,
    )


@router.get("/slots", response_model=SlotsResponse)
async def list_slots(
    date: date_type,
    start: time_type,
    end: time_type,
    party_size: int = Query(..., ge=1),
    duration_minutes: Optional[int] = Query(None, ge=1),
    step_minutes: Optional[int] = Query(None, ge=1),
    online_only: bool = True,
    calculator: AvailabilityCalculator = Depends(get_calculator),
    db: AsyncSession = Depends(get_db),
):
    """Start times between start and end with at least one free resource"""
    slots = calculator.find_available_slots(
        db,
        date,
        party_size,
        start,
        end,
        duration_minutes=duration_minutes,
        step_minutes=step_minutes,
        online_only=online_only,
    )
    return SlotsResponse(
        booking_date=date,
        party_size=party_size,
        duration_minutes=slots.duration_minutes,
        slots=await slots.to_list(),
    )
