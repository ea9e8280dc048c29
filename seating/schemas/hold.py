"""Slot hold schemas"""

from datetime import date, datetime, time
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class HoldCreate(BaseModel):
    """Hold the best free resource for a slot while the guest books"""
    booking_date: date
    start_time: time
    party_size: int = Field(..., ge=1)
    duration_minutes: Optional[int] = Field(None, ge=1)


class HoldRelease(BaseModel):
    reason: str = Field("released", max_length=50)


class HoldResponse(BaseModel):
    """Slot hold state"""
    hold_token: UUID
    booking_date: date
    start_time: time
    duration_minutes: int
    party_size: int
    table_id: UUID
    join_group_id: Optional[UUID] = None
    locked_at: datetime
    expires_at: datetime
    released_at: Optional[datetime] = None
    reason: str
    already_released: bool = False

    class Config:
        from_attributes = True
