"""Resource catalog: active tables and join groups"""

import sys
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.errors import NotFoundError, ValidationError
from seating.models.priority import PriorityItemType
from seating.models.table import Table, TableStatus, JoinGroup

logger = structlog.get_logger()


@dataclass(frozen=True)
class Resource:
    """A bookable unit: one table, or a join group of tables"""
    item_type: PriorityItemType
    id: UUID
    label: str
    capacity: int
    min_party_size: int
    table_ids: Tuple[UUID, ...]
    priority_rank: int
    online_bookable: bool

    @classmethod
    def from_table(cls, table: Table) -> "Resource":
        return cls(
            item_type=PriorityItemType.TABLE,
            id=table.id,
            label=table.label,
            capacity=table.seat_count,
            min_party_size=1,
            table_ids=(table.id,),
            priority_rank=table.priority_rank or 0,
            online_bookable=bool(table.online_bookable),
        )

    @classmethod
    def from_join_group(cls, group: JoinGroup) -> "Resource":
        # Offered online by max_party_size alone, whatever its members are flagged
        return cls(
            item_type=PriorityItemType.JOIN_GROUP,
            id=group.id,
            label=group.name,
            capacity=group.max_party_size,
            min_party_size=group.min_party_size or 1,
            table_ids=tuple(group.member_ids),
            priority_rank=sys.maxsize,
            online_bookable=True,
        )

    @property
    def key(self) -> Tuple[PriorityItemType, UUID]:
        return (self.item_type, self.id)

    @property
    def is_join_group(self) -> bool:
        return self.item_type == PriorityItemType.JOIN_GROUP

    @property
    def primary_table_id(self) -> UUID:
        return self.table_ids[0]

    def fits(self, party_size: int) -> bool:
        return self.min_party_size <= party_size <= self.capacity


def capacity_order_key(resource: Resource):
    """Ascending capacity, tables before join groups, then table priority rank"""
    return (resource.capacity, resource.is_join_group, resource.priority_rank, resource.label)


class ResourceCatalog:
    """
    Read and maintenance access to the floor's resources.

    Deleted tables are excluded from every listing, and so is any join group
    that includes a deleted table.
    """

    async def list_active_tables(self, db: AsyncSession) -> List[Table]:
        result = await db.execute(
            select(Table)
            .where(Table.status == TableStatus.ACTIVE)
            .order_by(Table.priority_rank, Table.label)
        )
        return list(result.scalars().all())

    async def list_join_groups(
        self,
        db: AsyncSession,
        tables: Optional[Sequence[Table]] = None,
    ) -> List[JoinGroup]:
        if tables is None:
            tables = await self.list_active_tables(db)
        active_ids = {table.id for table in tables}

        result = await db.execute(
            select(JoinGroup).where(JoinGroup.is_active == True).order_by(JoinGroup.name)
        )
        groups = []
        for group in result.scalars().all():
            members = group.member_ids
            if len(members) >= 2 and all(member in active_ids for member in members):
                groups.append(group)
        return groups

    async def list_resources(self, db: AsyncSession) -> List[Resource]:
        """Active tables then usable join groups, in catalog order"""
        tables = await self.list_active_tables(db)
        groups = await self.list_join_groups(db, tables)
        resources = [Resource.from_table(table) for table in tables]
        resources.extend(Resource.from_join_group(group) for group in groups)
        return resources

    async def get_table(self, db: AsyncSession, table_id: UUID, include_deleted: bool = False) -> Table:
        table = await db.get(Table, table_id)
        if table is None or (not include_deleted and not table.is_active):
            raise NotFoundError("Table not found", table_id=str(table_id))
        return table

    async def get_join_group(self, db: AsyncSession, group_id: UUID) -> JoinGroup:
        group = await db.get(JoinGroup, group_id)
        if group is None or not group.is_active:
            raise NotFoundError("Join group not found", join_group_id=str(group_id))
        return group

    async def add_table(
        self,
        db: AsyncSession,
        label: str,
        seat_count: int,
        section_id: Optional[str] = None,
        priority_rank: int = 0,
        online_bookable: bool = True,
    ) -> Table:
        if seat_count < 1:
            raise ValidationError("Table must seat at least one guest", seat_count=seat_count)

        table = Table(
            label=label,
            seat_count=seat_count,
            section_id=section_id,
            priority_rank=priority_rank,
            online_bookable=online_bookable,
            status=TableStatus.ACTIVE,
        )
        db.add(table)
        await db.flush()

        logger.info("Table added", table_id=str(table.id), label=label, seat_count=seat_count)
        return table

    async def add_join_group(
        self,
        db: AsyncSession,
        name: str,
        member_table_ids: Sequence[UUID],
        max_party_size: int,
        min_party_size: int = 1,
    ) -> JoinGroup:
        members = list(dict.fromkeys(member_table_ids))
        if len(members) < 2:
            raise ValidationError("A join group needs at least two tables", name=name)
        if min_party_size < 1 or max_party_size < min_party_size:
            raise ValidationError(
                "Invalid party size range",
                min_party_size=min_party_size,
                max_party_size=max_party_size,
            )

        for table_id in members:
            await self.get_table(db, table_id)

        group = JoinGroup(
            name=name,
            member_table_ids=[str(table_id) for table_id in members],
            min_party_size=min_party_size,
            max_party_size=max_party_size,
            is_active=True,
        )
        db.add(group)
        await db.flush()

        logger.info("Join group added", join_group_id=str(group.id), name=name, members=len(members))
        return group

    async def soft_delete_table(self, db: AsyncSession, table_id: UUID) -> Table:
        """Mark a table deleted; the row stays for booking history"""
        table = await self.get_table(db, table_id, include_deleted=True)
        if table.status == TableStatus.DELETED:
            return table

        table.status = TableStatus.DELETED
        table.deleted_at = datetime.utcnow()
        await db.flush()

        logger.info("Table soft-deleted", table_id=str(table_id), label=table.label)
        return table
