"""Priority directory schemas"""

from typing import List
from uuid import UUID
from pydantic import BaseModel, Field

from seating.models.priority import PriorityItemType


class PriorityItem(BaseModel):
    item_type: PriorityItemType
    item_id: UUID


class PriorityEntryResponse(BaseModel):
    """Priority entry response"""
    id: UUID
    party_size: int
    item_type: PriorityItemType
    item_id: UUID
    priority_rank: int

    class Config:
        from_attributes = True


class PriorityReorderRequest(BaseModel):
    """Full ordering for one party size, highest priority first"""
    items: List[PriorityItem]


class PriorityMoveRequest(BaseModel):
    """Move the entry at from_index to to_index"""
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class PriorityListResponse(BaseModel):
    party_size: int
    items: List[PriorityEntryResponse]
