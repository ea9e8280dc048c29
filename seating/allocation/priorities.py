"""Per-party-size priority directory"""

from typing import Iterable, List, Sequence, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.catalog import Resource, ResourceCatalog, capacity_order_key
from seating.allocation.errors import DataIntegrityError, ValidationError
from seating.models.priority import PriorityEntry, PriorityItemType

logger = structlog.get_logger()

T = TypeVar("T")

PriorityKey = Tuple[PriorityItemType, UUID]


def move_item(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """Return a copy of items with the element at from_index moved to to_index"""
    if not 0 <= from_index < len(items) or not 0 <= to_index < len(items):
        raise ValidationError(
            "Index out of range",
            from_index=from_index,
            to_index=to_index,
            size=len(items),
        )
    reordered = list(items)
    reordered.insert(to_index, reordered.pop(from_index))
    return reordered


def verify_ranks(party_size: int, entries: Iterable[PriorityEntry]) -> None:
    """Raise DataIntegrityError unless ranks are exactly 1..N"""
    ranks = sorted(entry.priority_rank for entry in entries)
    if ranks != list(range(1, len(ranks) + 1)):
        raise DataIntegrityError(
            f"Priority ranks for party size {party_size} are not a contiguous 1..N sequence",
            party_size=party_size,
            ranks=ranks,
        )


class PriorityDirectory:
    """
    Ordered resource preferences per party size.

    Every mutation rewrites the ranks of one party size inside a single
    transaction and commits it, so readers never observe duplicated or
    skipped ranks. A party size whose stored ranks are already broken is
    refused until repair_priorities() renumbers it.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.catalog = catalog

    async def get_priority_order(self, db: AsyncSession, party_size: int) -> List[PriorityEntry]:
        result = await db.execute(
            select(PriorityEntry)
            .where(PriorityEntry.party_size == party_size)
            .order_by(PriorityEntry.priority_rank, PriorityEntry.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def default_order(resources: Iterable[Resource]) -> List[Resource]:
        """Fallback ordering when a party size has no entries"""
        return sorted(resources, key=capacity_order_key)

    async def _lock_entries(self, db: AsyncSession, party_size: int) -> List[PriorityEntry]:
        result = await db.execute(
            select(PriorityEntry)
            .where(PriorityEntry.party_size == party_size)
            .order_by(PriorityEntry.priority_rank, PriorityEntry.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def reorder_priorities(
        self,
        db: AsyncSession,
        party_size: int,
        ordered: Sequence[PriorityKey],
    ) -> List[PriorityEntry]:
        """Rewrite ranks 1..N for party_size to follow ordered"""
        try:
            entries = await self._lock_entries(db, party_size)
            verify_ranks(party_size, entries)

            by_key = {entry.key: entry for entry in entries}
            requested = [(PriorityItemType(item_type), item_id) for item_type, item_id in ordered]
            if len(requested) != len(set(requested)) or set(requested) != set(by_key):
                raise ValidationError(
                    "Ordered list must contain every entry for the party size exactly once",
                    party_size=party_size,
                    expected=len(by_key),
                    received=len(requested),
                )

            for rank, key in enumerate(requested, start=1):
                by_key[key].priority_rank = rank

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Priorities reordered", party_size=party_size, entries=len(requested))
        return [by_key[key] for key in requested]

    async def move_priority(
        self,
        db: AsyncSession,
        party_size: int,
        from_index: int,
        to_index: int,
    ) -> List[PriorityEntry]:
        """Drag-style reorder: move one entry to a new position"""
        entries = await self.get_priority_order(db, party_size)
        keys = move_item([entry.key for entry in entries], from_index, to_index)
        return await self.reorder_priorities(db, party_size, keys)

    async def generate_missing_priorities(self, db: AsyncSession, party_size: int) -> List[PriorityEntry]:
        """Append an entry for every resource that can seat party_size and has none"""
        if party_size < 1:
            raise ValidationError("Party size must be at least 1", party_size=party_size)

        try:
            entries = await self._lock_entries(db, party_size)
            verify_ranks(party_size, entries)

            covered = {entry.key for entry in entries}
            next_rank = len(entries) + 1
            created = []
            for resource in await self.catalog.list_resources(db):
                if resource.key in covered or not resource.fits(party_size):
                    continue
                entry = PriorityEntry(
                    party_size=party_size,
                    item_type=resource.item_type,
                    item_id=resource.id,
                    priority_rank=next_rank,
                )
                db.add(entry)
                created.append(entry)
                next_rank += 1

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Generated missing priorities", party_size=party_size, created=len(created))
        return created

    async def repair_priorities(self, db: AsyncSession, party_size: int) -> List[PriorityEntry]:
        """Renumber entries 1..N keeping their current relative order"""
        try:
            entries = await self._lock_entries(db, party_size)
            for rank, entry in enumerate(entries, start=1):
                entry.priority_rank = rank
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.warning("Priorities repaired", party_size=party_size, entries=len(entries))
        return entries
