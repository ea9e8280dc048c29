"""Booking API endpoints"""

from datetime import date as date_type
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.allocator import Allocator
from seating.allocation.backfill import BackfillSweeper
from seating.allocation.bookings import BookingRepository
from seating.allocation.errors import ConcurrencyConflictError, ValidationError
from seating.allocation.holds import SlotHoldService
from seating.api.deps import get_allocator, get_booking_repository, get_hold_service, get_sweeper
from seating.config import settings
from seating.database import get_db
from seating.schemas.booking import (
    AllocateRequest,
    AllocationResponse,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    SweepResponse,
)

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    booking_data: BookingCreate,
    bookings: BookingRepository = Depends(get_booking_repository),
    allocator: Allocator = Depends(get_allocator),
    holds: SlotHoldService = Depends(get_hold_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a booking and allocate it; it is kept unallocated when nothing fits.

    With a hold_token the booking takes the held resource and the hold is
    released as converted.
    """
    if booking_data.hold_token is not None:
        hold = await holds.get_live(db, booking_data.hold_token)
        if (hold.booking_date, hold.start_time) != (booking_data.booking_date, booking_data.booking_time):
            raise ValidationError(
                "Booking does not match the held slot", hold_token=str(booking_data.hold_token),
            )

    booking = await bookings.create_booking(
        db,
        party_size=booking_data.party_size,
        booking_date=booking_data.booking_date,
        booking_time=booking_data.booking_time,
        duration_minutes=booking_data.duration_minutes or settings.default_duration_minutes,
        guest_id=booking_data.guest_id,
        guest_name=booking_data.guest_name,
        status=booking_data.status,
        notes=booking_data.notes,
    )
    await db.commit()

    try:
        if booking_data.hold_token is not None:
            await holds.convert(booking_data.hold_token, booking.id)
        else:
            await allocator.allocate(booking.id)
    except ConcurrencyConflictError:
        logger.warning("Booking left for the backfill sweep", booking_id=str(booking.id))

    await db.refresh(booking)
    return booking


@router.get("/unallocated", response_model=List[BookingResponse])
async def list_unallocated(
    date: Optional[date_type] = None,
    limit: int = Query(100, ge=1, le=500),
    bookings: BookingRepository = Depends(get_booking_repository),
    db: AsyncSession = Depends(get_db),
):
    """Bookings waiting for a table, oldest slot first"""
    return await bookings.list_unallocated(db, booking_date=date, limit=limit)


@router.post("/backfill", response_model=SweepResponse)
async def run_backfill(
    date: Optional[date_type] = None,
    sweeper: BackfillSweeper = Depends(get_sweeper),
):
    """Retry allocation for the unallocated backlog"""
    return await sweeper.sweep(date)


@router.post("/{booking_id}/allocate", response_model=AllocationResponse)
async def allocate_booking(
    booking_id: UUID,
    request: Optional[AllocateRequest] = Body(None),
    allocator: Allocator = Depends(get_allocator),
):
    """Allocate a stored booking"""
    request = request or AllocateRequest()
    return await allocator.allocate(
        booking_id,
        party_size=request.party_size,
        booking_date=request.booking_date,
        booking_time=request.booking_time,
        force_reassign=request.force_reassign,
    )


@router.post("/{booking_id}/status", response_model=BookingResponse)
async def update_status(
    booking_id: UUID,
    request: BookingStatusUpdate,
    bookings: BookingRepository = Depends(get_booking_repository),
    db: AsyncSession = Depends(get_db),
):
    """Move a booking through its lifecycle"""
    booking = await bookings.get(db, booking_id)
    await bookings.transition_status(db, booking, request.status, actor="host", actor_type="user")
    await db.commit()
    await db.refresh(booking)

    return booking
