"""Tests for the priority directory"""

import pytest

from seating.allocation.errors import DataIntegrityError, ValidationError
from seating.allocation.priorities import move_item, verify_ranks
from seating.models import PriorityEntry, PriorityItemType
from tests.conftest import add_priority, add_table


def test_move_item_moves_one_element():
    assert move_item(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
    assert move_item(["a", "b", "c", "d"], 3, 0) == ["d", "a", "b", "c"]
    assert move_item(["a", "b"], 1, 1) == ["a", "b"]


def test_move_item_out_of_range():
    with pytest.raises(ValidationError):
        move_item(["a", "b"], 0, 2)
    with pytest.raises(ValidationError):
        move_item([], 0, 0)


def test_verify_ranks():
    entries = [PriorityEntry(priority_rank=rank) for rank in (2, 1, 3)]
    verify_ranks(4, entries)

    with pytest.raises(DataIntegrityError):
        verify_ranks(4, [PriorityEntry(priority_rank=rank) for rank in (1, 1, 2)])
    with pytest.raises(DataIntegrityError):
        verify_ranks(4, [PriorityEntry(priority_rank=rank) for rank in (1, 3)])


async def ranks(priorities, db, party_size):
    entries = await priorities.get_priority_order(db, party_size)
    return [(entry.item_id, entry.priority_rank) for entry in entries]


@pytest.mark.asyncio
async def test_reorder_rewrites_contiguous_ranks(test_db, priorities, floor):
    a, b = floor["A"], floor["B"]

    entries = await priorities.reorder_priorities(
        test_db, 4, [(PriorityItemType.TABLE, b.id), (PriorityItemType.TABLE, a.id)],
    )

    assert [entry.item_id for entry in entries] == [b.id, a.id]
    assert await ranks(priorities, test_db, 4) == [(b.id, 1), (a.id, 2)]


@pytest.mark.asyncio
async def test_reorder_requires_a_permutation(test_db, priorities, floor):
    a_id, b_id = floor["A"].id, floor["B"].id

    with pytest.raises(ValidationError):
        await priorities.reorder_priorities(test_db, 4, [(PriorityItemType.TABLE, a_id)])
    with pytest.raises(ValidationError):
        await priorities.reorder_priorities(
            test_db, 4, [(PriorityItemType.TABLE, a_id), (PriorityItemType.TABLE, a_id)],
        )

    # Unchanged after the failed attempts
    assert await ranks(priorities, test_db, 4) == [(a_id, 1), (b_id, 2)]


@pytest.mark.asyncio
async def test_move_priority(test_db, priorities, floor):
    c = await add_table(test_db, "C", 8, rank=3)
    await add_priority(test_db, 4, c, 3)
    await test_db.commit()

    await priorities.move_priority(test_db, 4, 2, 0)

    assert await ranks(priorities, test_db, 4) == [(c.id, 1), (floor["A"].id, 2), (floor["B"].id, 3)]


@pytest.mark.asyncio
async def test_broken_ranks_block_reorder_until_repaired(test_db, priorities, floor):
    a_id = floor["A"].id
    c = await add_table(test_db, "C", 8, rank=3)
    await add_priority(test_db, 4, c, 2)  # duplicates B's rank
    await test_db.commit()

    with pytest.raises(DataIntegrityError):
        await priorities.move_priority(test_db, 4, 0, 1)
    with pytest.raises(DataIntegrityError):
        await priorities.generate_missing_priorities(test_db, 4)

    repaired = await priorities.repair_priorities(test_db, 4)
    assert sorted(entry.priority_rank for entry in repaired) == [1, 2, 3]

    await priorities.move_priority(test_db, 4, 0, 2)
    order = await priorities.get_priority_order(test_db, 4)
    assert [entry.priority_rank for entry in order] == [1, 2, 3]
    assert order[-1].item_id == a_id


@pytest.mark.asyncio
async def test_generate_missing_priorities_only_for_fitting_resources(test_db, priorities, joined_floor):
    created = await priorities.generate_missing_priorities(test_db, 6)

    # A seats 4 and G starts at 5: only B and G fit a party of 6
    assert [(entry.item_id, entry.priority_rank) for entry in created] == [
        (joined_floor["B"].id, 1),
        (joined_floor["G"].id, 2),
    ]
    assert created[1].item_type == PriorityItemType.JOIN_GROUP

    # Idempotent
    assert await priorities.generate_missing_priorities(test_db, 6) == []


@pytest.mark.asyncio
async def test_generate_appends_after_existing_entries(test_db, priorities, floor):
    c = await add_table(test_db, "C", 4, rank=0)
    await test_db.commit()

    created = await priorities.generate_missing_priorities(test_db, 4)

    assert [(entry.item_id, entry.priority_rank) for entry in created] == [(c.id, 3)]


@pytest.mark.asyncio
async def test_default_order_is_ascending_capacity(test_db, catalog, priorities, floor):
    resources = await catalog.list_resources(test_db)

    assert [r.label for r in priorities.default_order(reversed(resources))] == ["A", "B"]
