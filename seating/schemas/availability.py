"""Availability schemas"""

from datetime import date, time
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel

from seating.allocation.catalog import Resource
from seating.models.priority import PriorityItemType


class ResourceResponse(BaseModel):
    """A bookable table or join group"""
    item_type: PriorityItemType
    id: UUID
    label: str
    capacity: int
    table_ids: List[UUID]

    @classmethod
    def from_resource(cls, resource: Resource) -> "ResourceResponse":
        return cls(
            item_type=resource.item_type,
            id=resource.id,
            label=resource.label,
            capacity=resource.capacity,
            table_ids=list(resource.table_ids),
        )


class AvailabilityResponse(BaseModel):
    """Availability check response"""
    booking_date: date
    booking_time: time
    party_size: int
    duration_minutes: int
    available: bool
    candidates: List[ResourceResponse] = []
    reason: Optional[str] = None
    alternative_times: List[time] = []


class SlotsResponse(BaseModel):
    """Start times with at least one free resource"""
    booking_date: date
    party_size: int
    duration_minutes: int
    slots: List[time] = []
