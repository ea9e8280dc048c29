"""Table and join group management API endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seating.allocation.catalog import ResourceCatalog
from seating.api.deps import get_catalog
from seating.database import get_db
from seating.schemas.table import TableCreate, TableResponse, JoinGroupCreate, JoinGroupResponse

router = APIRouter()


@router.get("", response_model=List[TableResponse])
async def list_tables(
    catalog: ResourceCatalog = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
):
    """List active tables in catalog order"""
    return await catalog.list_active_tables(db)


@router.post("", response_model=TableResponse, status_code=201)
async def create_table(
    table_data: TableCreate,
    catalog: ResourceCatalog = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
):
    """Create a new table"""
    table = await catalog.add_table(
        db,
        label=table_data.label,
        seat_count=table_data.seat_count,
        section_id=table_data.section_id,
        priority_rank=table_data.priority_rank,
        online_bookable=table_data.online_bookable,
    )
    await db.commit()
    await db.refresh(table)

    return table


@router.delete("/{table_id}", response_model=TableResponse)
async def delete_table(
    table_id: UUID,
    catalog: ResourceCatalog = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a table; its booking history is kept"""
    table = await catalog.soft_delete_table(db, table_id)
    await db.commit()
    await db.refresh(table)

    return table


@router.get("/join-groups", response_model=List[JoinGroupResponse])
async def list_join_groups(
    catalog: ResourceCatalog = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
):
    """List join groups whose member tables are all active"""
    return await catalog.list_join_groups(db)


@router.post("/join-groups", response_model=JoinGroupResponse, status_code=201)
async def create_join_group(
    group_data: JoinGroupCreate,
    catalog: ResourceCatalog = Depends(get_catalog),
    db: AsyncSession = Depends(get_db),
):
    """Create a join group from existing tables"""
    group = await catalog.add_join_group(
        db,
        name=group_data.name,
        member_table_ids=group_data.member_table_ids,
        max_party_size=group_data.max_party_size,
        min_party_size=group_data.min_party_size,
    )
    await db.commit()
    await db.refresh(group)

    return group
