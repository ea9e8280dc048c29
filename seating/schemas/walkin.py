"""Walk-in flow schemas"""

from datetime import date, time
from datetime import time as TimeOfDay
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from seating.allocation.conflicts import Conflict, ConflictType, Severity, SuggestionKind
from seating.allocation.walkin import ResolutionMode, WalkInFlow, WalkInStep
from seating.schemas.booking import AllocationResponse


class GuestIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    guest_id: Optional[UUID] = None


class SeatingIn(BaseModel):
    """Proposed seating; date, time and duration default to now"""
    party_size: int = Field(..., ge=1)
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(None, ge=1)


class DetectRequest(BaseModel):
    seating: SeatingIn
    guest: GuestIn = GuestIn()


class WalkInStart(BaseModel):
    """Open a flow and submit the guest search in one call"""
    guest: GuestIn = GuestIn()
    seating: SeatingIn


class ResolveRequest(BaseModel):
    """Resolution mode; manual needs the chosen conflict and suggestion"""
    mode: ResolutionMode
    conflict_index: Optional[int] = Field(None, ge=0)
    suggestion_index: Optional[int] = Field(None, ge=0)


class BackRequest(BaseModel):
    to: Optional[WalkInStep] = None


class SuggestionResponse(BaseModel):
    kind: SuggestionKind
    label: str
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    time: Optional[TimeOfDay] = None
    duration_minutes: Optional[int] = None

    class Config:
        from_attributes = True


class ConflictResponse(BaseModel):
    type: ConflictType
    severity: Severity
    message: str
    suggestions: List[SuggestionResponse] = []

    class Config:
        from_attributes = True


class SeatingResponse(BaseModel):
    party_size: int
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration_minutes: Optional[int] = None

    class Config:
        from_attributes = True


class WalkInResponse(BaseModel):
    """Walk-in flow state"""
    id: UUID
    step: WalkInStep
    seating: Optional[SeatingResponse] = None
    conflicts: List[ConflictResponse] = []
    resolution: Optional[ResolutionMode] = None
    forced: bool = False
    error: Optional[str] = None
    booking_id: Optional[UUID] = None
    guest_id: Optional[UUID] = None
    allocation: Optional[AllocationResponse] = None
    # Seated somewhere other than the chosen resource, or left without a table
    moved: bool = False
    unseated: bool = False

    class Config:
        from_attributes = True

    @classmethod
    def from_flow(cls, flow: WalkInFlow) -> "WalkInResponse":
        return cls.model_validate(flow)


def conflicts_response(conflicts: List[Conflict]) -> List[ConflictResponse]:
    return [ConflictResponse.model_validate(conflict) for conflict in conflicts]
