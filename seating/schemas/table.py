"""Table and join group schemas"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from seating.models.table import TableStatus


class TableCreate(BaseModel):
    """Create table request"""
    label: str = Field(..., min_length=1, max_length=50)
    seat_count: int = Field(..., ge=1)
    section_id: Optional[str] = None
    priority_rank: int = 0
    online_bookable: bool = True


class TableResponse(BaseModel):
    """Table response"""
    id: UUID
    label: str
    seat_count: int
    section_id: Optional[str]
    priority_rank: int
    online_bookable: bool
    status: TableStatus
    deleted_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class JoinGroupCreate(BaseModel):
    """Create join group request"""
    name: str = Field(..., min_length=1, max_length=100)
    member_table_ids: List[UUID] = Field(..., min_length=2)
    min_party_size: int = Field(1, ge=1)
    max_party_size: int = Field(..., ge=1)


class JoinGroupResponse(BaseModel):
    """Join group response"""
    id: UUID
    name: str
    member_table_ids: List[UUID]
    min_party_size: int
    max_party_size: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
