"""Priority directory API endpoints"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from seating.allocation.priorities import PriorityDirectory
from seating.api.deps import get_priority_directory
from seating.database import get_db
from seating.schemas.priority import (
    PriorityEntryResponse,
    PriorityListResponse,
    PriorityMoveRequest,
    PriorityReorderRequest,
)

router = APIRouter()


def _listing(party_size: int, entries) -> PriorityListResponse:
    return PriorityListResponse(
        party_size=party_size,
        items=[PriorityEntryResponse.model_validate(entry) for entry in entries],
    )


@router.get("/{party_size}", response_model=PriorityListResponse)
async def get_priorities(
    party_size: int = Path(..., ge=1),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    db: AsyncSession = Depends(get_db),
):
    """Priority order for a party size, highest first"""
    entries = await priorities.get_priority_order(db, party_size)
    return _listing(party_size, entries)


@router.put("/{party_size}", response_model=PriorityListResponse)
async def reorder_priorities(
    request: PriorityReorderRequest,
    party_size: int = Path(..., ge=1),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    db: AsyncSession = Depends(get_db),
):
    """Replace the order for a party size with a permutation of its entries"""
    entries = await priorities.reorder_priorities(
        db, party_size, [(item.item_type, item.item_id) for item in request.items],
    )
    return _listing(party_size, entries)


@router.post("/{party_size}/move", response_model=PriorityListResponse)
async def move_priority(
    request: PriorityMoveRequest,
    party_size: int = Path(..., ge=1),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    db: AsyncSession = Depends(get_db),
):
    entries = await priorities.move_priority(db, party_size, request.from_index, request.to_index)
    return _listing(party_size, entries)


@router.post("/{party_size}/generate", response_model=PriorityListResponse)
async def generate_priorities(
    party_size: int = Path(..., ge=1),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    db: AsyncSession = Depends(get_db),
):
    """Add entries for resources that can seat the party and have none"""
    await priorities.generate_missing_priorities(db, party_size)
    entries = await priorities.get_priority_order(db, party_size)
    return _listing(party_size, entries)


@router.post("/{party_size}/repair", response_model=PriorityListResponse)
async def repair_priorities(
    party_size: int = Path(..., ge=1),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    db: AsyncSession = Depends(get_db),
):
    """Renumber ranks 1..N keeping the current order"""
    entries = await priorities.repair_priorities(db, party_size)
    return _listing(party_size, entries)
