"""Tests for the walk-in flow"""

import pytest
from datetime import datetime, time, timedelta
from uuid import uuid4

from sqlalchemy import func, select

from seating.allocation.conflicts import ConflictType, ProposedSeating, Suggestion, SuggestionKind
from seating.allocation.errors import InvalidTransitionError, NotFoundError, ValidationError
from seating.allocation.walkin import (
    GuestDetails,
    ResolutionMode,
    TRANSITIONS,
    WalkInEvent,
    WalkInFlow,
    WalkInFlowStore,
    WalkInStep,
    apply_suggestion,
)
from seating.models import Booking, BookingSource, BookingStatus, Guest
from tests.conftest import add_booking

ADA = GuestDetails(name="Ada Lovelace", email="ada@example.com", phone="+15550001111")


async def count(session_factory, model) -> int:
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar()


def test_reset_allowed_from_every_step():
    for step in WalkInStep:
        assert TRANSITIONS[(step, WalkInEvent.RESET)] == {WalkInStep.GUEST_SEARCH}


def test_illegal_transitions_raise():
    flow = WalkInFlow()

    with pytest.raises(InvalidTransitionError):
        flow.fire(WalkInEvent.CONFIRM, WalkInStep.CONFIRMED)
    with pytest.raises(InvalidTransitionError):
        flow.fire(WalkInEvent.SUBMIT_GUEST, WalkInStep.CONFIRMED)
    assert flow.step == WalkInStep.GUEST_SEARCH


def test_back_unwinds_history():
    flow = WalkInFlow()
    flow.fire(WalkInEvent.SUBMIT_GUEST, WalkInStep.CONFLICT_RESOLUTION)
    flow.fire(WalkInEvent.RESOLVE, WalkInStep.VALIDATION)
    assert flow.history == [WalkInStep.GUEST_SEARCH, WalkInStep.CONFLICT_RESOLUTION]

    flow.fire(WalkInEvent.BACK, WalkInStep.GUEST_SEARCH)
    assert flow.step == WalkInStep.GUEST_SEARCH
    assert flow.history == []


def test_apply_suggestion():
    seating = ProposedSeating(party_size=4, table_id=uuid4(), booking_time=time(19, 0), duration_minutes=120)
    group_id = uuid4()

    moved = apply_suggestion(seating, Suggestion(kind=SuggestionKind.ALTERNATE_JOIN_GROUP, label="G", join_group_id=group_id))
    assert moved.table_id is None
    assert moved.join_group_id == group_id

    assert apply_suggestion(seating, Suggestion(kind=SuggestionKind.SHORTEN_DURATION, label="", duration_minutes=45)).duration_minutes == 45
    assert apply_suggestion(seating, Suggestion(kind=SuggestionKind.WAIT, label="", time=time(20, 0))).booking_time == time(20, 0)
    assert apply_suggestion(seating, Suggestion(kind=SuggestionKind.ACKNOWLEDGE, label="")) == seating


def test_flow_store():
    store = WalkInFlowStore()
    flow = store.create()

    assert store.get(flow.id) is flow
    store.discard(flow.id)
    assert len(store) == 0


def test_flow_store_evicts_idle_flows():
    now = [datetime(2030, 6, 14, 19, 0)]
    store = WalkInFlowStore(ttl_minutes=30, clock=lambda: now[0])
    idle = store.create()
    now[0] += timedelta(minutes=20)
    active = store.create()

    now[0] += timedelta(minutes=15)
    assert store.get(active.id) is active
    with pytest.raises(NotFoundError):
        store.get(idle.id)

    # Reading a flow keeps it alive
    now[0] += timedelta(minutes=25)
    assert store.evict_expired() == 0
    now[0] += timedelta(minutes=10)
    assert store.evict_expired() == 1
    assert len(store) == 0


@pytest.mark.asyncio
async def test_walk_in_without_conflicts(session_factory, orchestrator, floor):
    flow = WalkInFlow()

    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=4, table_id=floor["A"].id))
    assert flow.step == WalkInStep.VALIDATION
    assert flow.conflicts == []

    await orchestrator.confirm_validation(flow)

    assert flow.step == WalkInStep.CONFIRMED
    assert flow.error is None
    assert flow.allocation.table_id == floor["A"].id
    assert flow.moved is False
    assert flow.unseated is False

    async with session_factory() as db:
        booking = await db.get(Booking, flow.booking_id)
        guest = await db.get(Guest, flow.guest_id)
    assert booking.status == BookingStatus.SEATED
    assert booking.source == BookingSource.WALK_IN
    assert booking.table_id == floor["A"].id
    assert booking.guest_id == guest.id
    assert guest.email == "ada@example.com"
    assert guest.visit_count == 1


@pytest.mark.asyncio
async def test_force_seats_party_despite_capacity(session_factory, orchestrator, floor):
    """A forced walk-in seats a party larger than the table"""
    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=6, table_id=floor["A"].id))

    assert flow.step == WalkInStep.CONFLICT_RESOLUTION
    assert [c.type for c in flow.conflicts] == [ConflictType.CAPACITY_EXCEEDED]

    await orchestrator.resolve_conflict(flow, ResolutionMode.FORCE)
    await orchestrator.confirm_validation(flow)

    assert flow.step == WalkInStep.CONFIRMED
    async with session_factory() as db:
        booking = await db.get(Booking, flow.booking_id)
    assert booking.party_size == 6
    assert booking.table_id == floor["A"].id


@pytest.mark.asyncio
async def test_auto_resolve_applies_top_suggestion(session_factory, orchestrator, floor):
    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=6, table_id=floor["A"].id))

    await orchestrator.resolve_conflict(flow, ResolutionMode.AUTO)
    assert flow.seating.table_id == floor["B"].id

    await orchestrator.confirm_validation(flow)
    assert flow.allocation.table_id == floor["B"].id


@pytest.mark.asyncio
async def test_manual_resolution_requires_offered_suggestion(test_db, orchestrator, floor):
    await add_booking(test_db, time(20, 0), party_size=4, table=floor["A"])
    await test_db.commit()

    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=4, table_id=floor["A"].id))
    occupied = flow.conflicts[0]
    assert occupied.type == ConflictType.TABLE_OCCUPIED

    with pytest.raises(ValidationError):
        await orchestrator.resolve_conflict(
            flow, ResolutionMode.MANUAL, Suggestion(kind=SuggestionKind.WAIT, label="never offered"),
        )
    assert flow.step == WalkInStep.CONFLICT_RESOLUTION

    shorten = occupied.suggestions[0]
    await orchestrator.resolve_conflict(flow, ResolutionMode.MANUAL, shorten)
    assert flow.seating.duration_minutes == 60

    await orchestrator.confirm_validation(flow)
    assert flow.allocation.table_id == floor["A"].id


@pytest.mark.asyncio
async def test_abort_writes_nothing(session_factory, orchestrator, floor):
    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=6, table_id=floor["A"].id))
    await orchestrator.resolve_conflict(flow, ResolutionMode.FORCE)

    orchestrator.reset(flow)

    assert flow.step == WalkInStep.GUEST_SEARCH
    assert flow.seating is None
    assert await count(session_factory, Booking) == 0
    assert await count(session_factory, Guest) == 0


@pytest.mark.asyncio
async def test_failed_commit_stays_at_validation(session_factory, orchestrator, floor):
    flow = WalkInFlow()
    ghost = GuestDetails(guest_id=uuid4())
    await orchestrator.submit_guest_search(flow, ghost, ProposedSeating(party_size=2, table_id=floor["A"].id))

    await orchestrator.confirm_validation(flow)

    assert flow.step == WalkInStep.VALIDATION
    assert flow.error == "Guest not found"
    assert await count(session_factory, Booking) == 0

    # Operator goes back and fixes the guest
    orchestrator.back(flow)
    assert flow.step == WalkInStep.GUEST_SEARCH
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=2, table_id=floor["A"].id))
    await orchestrator.confirm_validation(flow)
    assert flow.step == WalkInStep.CONFIRMED


@pytest.mark.asyncio
async def test_taken_table_falls_back_at_commit(test_db, session_factory, orchestrator, floor):
    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=4, table_id=floor["A"].id))
    assert flow.step == WalkInStep.VALIDATION

    # Another host seats A before this walk-in is confirmed
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["A"], status=BookingStatus.SEATED)
    await test_db.commit()

    await orchestrator.confirm_validation(flow)

    assert flow.step == WalkInStep.CONFIRMED
    assert flow.allocation.table_id == floor["B"].id
    assert flow.moved is True
    assert flow.unseated is False


@pytest.mark.asyncio
async def test_walk_in_left_unseated_when_floor_fills_before_commit(test_db, session_factory, orchestrator, floor):
    flow = WalkInFlow()
    await orchestrator.submit_guest_search(flow, ADA, ProposedSeating(party_size=4, table_id=floor["A"].id))

    await add_booking(test_db, time(19, 0), party_size=4, table=floor["A"], status=BookingStatus.SEATED)
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["B"], status=BookingStatus.SEATED)
    await test_db.commit()

    await orchestrator.confirm_validation(flow)

    assert flow.step == WalkInStep.CONFIRMED
    assert flow.unseated is True
    assert flow.moved is False
    assert flow.allocation.success is False
    async with session_factory() as db:
        booking = await db.get(Booking, flow.booking_id)
    assert booking.is_unallocated is True
    assert booking.status == BookingStatus.SEATED


@pytest.mark.asyncio
async def test_returning_guest_is_matched_by_phone(test_db, session_factory, orchestrator, floor):
    test_db.add(Guest(name="Ada", phone="+15550001111", visit_count=3))
    await test_db.commit()

    flow = WalkInFlow()
    await orchestrator.submit_guest_search(
        flow, GuestDetails(phone="+15550001111"), ProposedSeating(party_size=2, table_id=floor["A"].id),
    )
    await orchestrator.confirm_validation(flow)

    assert await count(session_factory, Guest) == 1
    async with session_factory() as db:
        guest = await db.get(Guest, flow.guest_id)
    assert guest.visit_count == 4
    assert guest.name == "Ada"


@pytest.mark.asyncio
async def test_confirm_only_from_validation(orchestrator, floor):
    flow = WalkInFlow()

    with pytest.raises(InvalidTransitionError):
        await orchestrator.confirm_validation(flow)
    with pytest.raises(InvalidTransitionError):
        await orchestrator.resolve_conflict(flow, ResolutionMode.FORCE)


@pytest.mark.asyncio
async def test_short_walk_in_rejected(orchestrator, floor):
    flow = WalkInFlow()

    with pytest.raises(ValidationError):
        await orchestrator.submit_guest_search(
            flow, ADA, ProposedSeating(party_size=2, table_id=floor["A"].id, duration_minutes=15),
        )
    assert flow.step == WalkInStep.GUEST_SEARCH
