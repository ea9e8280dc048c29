"""Pydantic schemas for request/response validation"""

from seating.schemas.table import (
    TableCreate,
    TableResponse,
    JoinGroupCreate,
    JoinGroupResponse,
)
from seating.schemas.priority import (
    PriorityItem,
    PriorityEntryResponse,
    PriorityReorderRequest,
    PriorityMoveRequest,
    PriorityListResponse,
)
from seating.schemas.availability import (
    ResourceResponse,
    AvailabilityResponse,
    SlotsResponse,
)
from seating.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    AllocateRequest,
    AllocationResponse,
    SweepResponse,
)
from seating.schemas.hold import (
    HoldCreate,
    HoldRelease,
    HoldResponse,
)
from seating.schemas.walkin import (
    GuestIn,
    SeatingIn,
    DetectRequest,
    WalkInStart,
    ResolveRequest,
    BackRequest,
    ConflictResponse,
    WalkInResponse,
)

__all__ = [
    "TableCreate",
    "TableResponse",
    "JoinGroupCreate",
    "JoinGroupResponse",
    "PriorityItem",
    "PriorityEntryResponse",
    "PriorityReorderRequest",
    "PriorityMoveRequest",
    "PriorityListResponse",
    "ResourceResponse",
    "AvailabilityResponse",
    "SlotsResponse",
    "BookingCreate",
    "BookingResponse",
    "BookingStatusUpdate",
    "AllocateRequest",
    "AllocationResponse",
    "SweepResponse",
    "HoldCreate",
    "HoldRelease",
    "HoldResponse",
    "GuestIn",
    "SeatingIn",
    "DetectRequest",
    "WalkInStart",
    "ResolveRequest",
    "BackRequest",
    "ConflictResponse",
    "WalkInResponse",
]
