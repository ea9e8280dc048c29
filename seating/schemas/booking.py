"""Booking schemas"""

from datetime import date, datetime, time
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from seating.models.booking import BookingStatus, BookingSource


class BookingCreate(BaseModel):
    """Create booking request; the booking is allocated right after insert"""
    guest_name: Optional[str] = None
    guest_id: Optional[UUID] = None
    party_size: int = Field(..., ge=1)
    booking_date: date
    booking_time: time
    duration_minutes: Optional[int] = Field(None, ge=1)
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: Optional[str] = None
    # Token of a live slot hold; the booking takes the held resource
    hold_token: Optional[UUID] = None


class BookingResponse(BaseModel):
    """Booking response"""
    id: UUID
    guest_id: Optional[UUID]
    guest_name: Optional[str]
    party_size: int
    booking_date: date
    booking_time: time
    duration_minutes: int
    table_id: Optional[UUID]
    join_group_id: Optional[UUID]
    is_unallocated: bool
    status: BookingStatus
    source: BookingSource
    finished_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class AllocateRequest(BaseModel):
    """Optional expectations checked against the stored booking"""
    party_size: Optional[int] = Field(None, ge=1)
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    force_reassign: bool = False


class AllocationResponse(BaseModel):
    """Allocation outcome"""
    booking_id: UUID
    success: bool
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    changed: bool = False
    attempts: int = 1
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class SweepResponse(BaseModel):
    """Backfill sweep report"""
    booking_date: Optional[date] = None
    attempted: int
    allocated: int
    still_unallocated: int
    failed: int
    allocated_ids: List[UUID] = []

    class Config:
        from_attributes = True
