"""Tests for the booking lifecycle"""

import pytest
from datetime import time

from sqlalchemy import select

from seating.allocation.errors import InvalidTransitionError, ValidationError
from seating.models import AuditLog, BookingStatus
from tests.conftest import NOW, SERVICE_DATE, add_booking


@pytest.mark.asyncio
async def test_create_booking_starts_unallocated(test_db, bookings):
    booking = await bookings.create_booking(test_db, 2, SERVICE_DATE, time(19, 0), 90, guest_name="Grace")
    await test_db.commit()

    assert booking.is_unallocated is True
    assert booking.table_id is None
    assert booking.status == BookingStatus.PENDING

    backlog = await bookings.list_unallocated(test_db, SERVICE_DATE)
    assert [b.id for b in backlog] == [booking.id]


@pytest.mark.asyncio
async def test_create_booking_validates(test_db, bookings):
    with pytest.raises(ValidationError):
        await bookings.create_booking(test_db, 0, SERVICE_DATE, time(19, 0), 90)
    with pytest.raises(ValidationError):
        await bookings.create_booking(test_db, 2, SERVICE_DATE, time(19, 0), 0)


@pytest.mark.asyncio
async def test_lifecycle_through_finish(test_db, bookings, floor):
    booking = await add_booking(test_db, time(18, 0), party_size=4, table=floor["A"])

    await bookings.transition_status(test_db, booking, BookingStatus.SEATED)
    await bookings.transition_status(test_db, booking, BookingStatus.FINISHED)
    await test_db.commit()

    assert booking.status == BookingStatus.FINISHED
    assert booking.finished_at == NOW

    result = await test_db.execute(select(AuditLog).where(AuditLog.resource_id == booking.id))
    reasons = sorted(entry.data_json["reason"] for entry in result.scalars().all())
    assert reasons == ["status -> finished", "status -> seated"]


@pytest.mark.asyncio
async def test_terminal_states_are_final(test_db, bookings, floor):
    booking = await add_booking(test_db, time(18, 0), party_size=4, status=BookingStatus.CANCELLED)

    with pytest.raises(InvalidTransitionError):
        await bookings.transition_status(test_db, booking, BookingStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_pending_cannot_finish(test_db, bookings, floor):
    booking = await add_booking(test_db, time(18, 0), party_size=4, status=BookingStatus.PENDING)

    with pytest.raises(InvalidTransitionError):
        await bookings.transition_status(test_db, booking, BookingStatus.FINISHED)
