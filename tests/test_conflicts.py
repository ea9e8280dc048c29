"""Tests for walk-in conflict detection"""

import pytest
from datetime import time
from uuid import uuid4

from seating.allocation.conflicts import ConflictType, ProposedSeating, Severity, SuggestionKind
from seating.allocation.errors import NotFoundError, ValidationError
from seating.models import BookingStatus, Guest
from tests.conftest import SERVICE_DATE, add_booking


def by_type(conflicts):
    return {conflict.type: conflict for conflict in conflicts}


@pytest.mark.asyncio
async def test_free_table_has_no_conflicts(test_db, detector, floor):
    conflicts = await detector.detect(test_db, ProposedSeating(party_size=4, table_id=floor["A"].id))

    assert conflicts == []


@pytest.mark.asyncio
async def test_capacity_exceeded(test_db, detector, floor):
    """Party of 6 at a 4-seat table"""
    conflicts = await detector.detect(test_db, ProposedSeating(party_size=6, table_id=floor["A"].id))

    assert [conflict.type for conflict in conflicts] == [ConflictType.CAPACITY_EXCEEDED]
    conflict = conflicts[0]
    assert conflict.severity == Severity.HIGH
    assert conflict.suggestions[0].kind == SuggestionKind.ALTERNATE_TABLE
    assert conflict.suggestions[0].table_id == floor["B"].id


@pytest.mark.asyncio
async def test_table_in_use_now_is_high_severity(test_db, detector, floor):
    await add_booking(test_db, time(18, 30), party_size=4, table=floor["A"], status=BookingStatus.SEATED)
    await test_db.commit()

    conflicts = by_type(await detector.detect(
        test_db, ProposedSeating(party_size=4, table_id=floor["A"].id, duration_minutes=90),
    ))

    occupied = conflicts[ConflictType.TABLE_OCCUPIED]
    assert occupied.severity == Severity.HIGH
    kinds = [suggestion.kind for suggestion in occupied.suggestions]
    assert SuggestionKind.SHORTEN_DURATION not in kinds
    assert occupied.suggestions[0].table_id == floor["B"].id

    wait = next(s for s in occupied.suggestions if s.kind == SuggestionKind.WAIT)
    assert wait.time == time(20, 30)


@pytest.mark.asyncio
async def test_upcoming_booking_offers_shorter_stay(test_db, detector, floor):
    await add_booking(test_db, time(20, 0), party_size=4, table=floor["A"])
    await test_db.commit()

    conflicts = await detector.detect(test_db, ProposedSeating(party_size=4, table_id=floor["A"].id))

    occupied = by_type(conflicts)[ConflictType.TABLE_OCCUPIED]
    assert occupied.severity == Severity.MEDIUM
    shorten = occupied.suggestions[0]
    assert shorten.kind == SuggestionKind.SHORTEN_DURATION
    assert shorten.duration_minutes == 60


@pytest.mark.asyncio
async def test_gap_too_short_to_shorten(test_db, detector, floor):
    await add_booking(test_db, time(19, 15), party_size=4, table=floor["A"])
    await test_db.commit()

    conflicts = await detector.detect(test_db, ProposedSeating(party_size=4, table_id=floor["A"].id))

    occupied = by_type(conflicts)[ConflictType.TABLE_OCCUPIED]
    assert occupied.severity == Severity.MEDIUM
    assert all(s.kind != SuggestionKind.SHORTEN_DURATION for s in occupied.suggestions)


@pytest.mark.asyncio
async def test_join_group_occupied_through_member(test_db, detector, joined_floor):
    await add_booking(test_db, time(18, 0), party_size=2, table=joined_floor["B"], status=BookingStatus.SEATED)
    await test_db.commit()

    conflicts = await detector.detect(
        test_db, ProposedSeating(party_size=8, join_group_id=joined_floor["G"].id),
    )

    assert by_type(conflicts)[ConflictType.TABLE_OCCUPIED].severity == Severity.HIGH


@pytest.mark.asyncio
async def test_double_booking_for_same_guest(test_db, detector, floor):
    guest = Guest(name="Ada", email="ada@example.com", phone="+15550001111")
    test_db.add(guest)
    await test_db.flush()
    await add_booking(test_db, time(20, 0), party_size=2, table=floor["B"], guest_id=guest.id)
    await test_db.commit()

    conflicts = await detector.detect(
        test_db, ProposedSeating(party_size=2, table_id=floor["A"].id, email="ada@example.com", duration_minutes=60),
    )

    double = by_type(conflicts)[ConflictType.DOUBLE_BOOKING]
    assert double.severity == Severity.MEDIUM
    assert [s.kind for s in double.suggestions] == [SuggestionKind.ACKNOWLEDGE]


@pytest.mark.asyncio
async def test_guest_booking_outside_window_is_fine(test_db, detector, floor):
    guest = Guest(name="Ada", phone="+15550001111")
    test_db.add(guest)
    await test_db.flush()
    await add_booking(test_db, time(12, 0), party_size=2, table=floor["B"], guest_id=guest.id)
    await test_db.commit()

    conflicts = await detector.detect(
        test_db, ProposedSeating(party_size=2, table_id=floor["A"].id, phone="+15550001111", duration_minutes=60),
    )

    assert conflicts == []


@pytest.mark.asyncio
async def test_detect_validates_input(test_db, detector, floor):
    with pytest.raises(ValidationError):
        await detector.detect(test_db, ProposedSeating(party_size=4))
    with pytest.raises(NotFoundError):
        await detector.detect(test_db, ProposedSeating(party_size=4, table_id=uuid4()))


def test_defaults_come_from_clock(detector):
    seating = detector.with_defaults(ProposedSeating(party_size=2, table_id=uuid4()))

    assert seating.booking_date == SERVICE_DATE
    assert seating.booking_time == time(19, 0)
    assert seating.duration_minutes == 120
