"""Slot hold API endpoints"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends

from seating.allocation.holds import SlotHoldService
from seating.api.deps import get_hold_service
from seating.schemas.hold import HoldCreate, HoldRelease, HoldResponse

router = APIRouter()


def _response(hold, already_released: bool = False) -> HoldResponse:
    response = HoldResponse.model_validate(hold)
    response.already_released = already_released
    return response


@router.post("", response_model=HoldResponse, status_code=201)
async def create_hold(
    request: HoldCreate,
    holds: SlotHoldService = Depends(get_hold_service),
):
    """Hold a slot; 409 when nothing is left to hold"""
    hold = await holds.create_hold(
        request.booking_date,
        request.start_time,
        request.party_size,
        duration_minutes=request.duration_minutes,
    )
    return _response(hold)


@router.post("/{hold_token}/extend", response_model=HoldResponse)
async def extend_hold(
    hold_token: UUID,
    holds: SlotHoldService = Depends(get_hold_service),
):
    """Keep a hold alive; 404 once released, 410 once lapsed"""
    return _response(await holds.extend_hold(hold_token))


@router.post("/{hold_token}/release", response_model=HoldResponse)
async def release_hold(
    hold_token: UUID,
    request: Optional[HoldRelease] = Body(None),
    holds: SlotHoldService = Depends(get_hold_service),
):
    """Release a hold; releasing it again is a no-op"""
    hold, already_released = await holds.release_hold(
        hold_token, reason=request.reason if request else "released",
    )
    return _response(hold, already_released)
