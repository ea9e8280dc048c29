"""Tests for the availability calculator"""

import pytest
from datetime import datetime, time

from seating.allocation.availability import REASON_ALL_BOOKED, REASON_NO_SUITABLE_SIZE
from seating.allocation.errors import ValidationError
from seating.models import BookingStatus
from tests.conftest import SERVICE_DATE, add_block, add_booking, add_table


def labels(result):
    return [resource.label for resource in result.candidates]


@pytest.mark.asyncio
async def test_candidates_follow_priority_order(test_db, calculator, floor):
    """Both tables free: the higher-ranked table comes first"""
    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 120)

    assert result.available is True
    assert labels(result) == ["A", "B"]
    assert result.reason is None


@pytest.mark.asyncio
async def test_overlap_removes_booked_table(test_db, calculator, floor):
    """A booked 19:00-21:00, request 20:00-22:00: only B remains"""
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["A"])
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(20, 0), 4, 120)

    assert labels(result) == ["B"]


@pytest.mark.asyncio
async def test_back_to_back_windows_do_not_overlap(test_db, calculator, floor):
    await add_booking(test_db, time(17, 0), party_size=4, table=floor["A"])
    await add_booking(test_db, time(21, 0), party_size=4, table=floor["A"])
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 120)

    assert labels(result) == ["A", "B"]


@pytest.mark.asyncio
async def test_join_group_needs_every_member_free(test_db, calculator, joined_floor):
    """A booked 18:00-20:00: a join group including A is unavailable at 19:00"""
    await add_booking(test_db, time(18, 0), party_size=2, table=joined_floor["A"])
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 8, 120)

    assert result.available is False
    assert result.reason == REASON_ALL_BOOKED

    later = await calculator.check_availability(test_db, SERVICE_DATE, time(20, 0), 8, 120)
    assert labels(later) == ["G"]


@pytest.mark.asyncio
async def test_join_group_booking_occupies_members(test_db, calculator, joined_floor):
    await add_booking(test_db, time(19, 0), party_size=8, join_group=joined_floor["G"])
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 30), 4, 60)

    assert result.available is False
    assert result.reason == REASON_ALL_BOOKED


@pytest.mark.asyncio
async def test_no_suitable_size(test_db, calculator, joined_floor):
    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 12, 120)

    assert result.available is False
    assert result.candidates == []
    assert result.reason == REASON_NO_SUITABLE_SIZE


@pytest.mark.asyncio
async def test_join_group_minimum_party_size(test_db, calculator, joined_floor):
    # G seats 5 to 10, so a pair only gets the tables
    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 2, 120)

    assert labels(result) == ["A", "B"]


@pytest.mark.asyncio
async def test_cancelled_bookings_free_the_table(test_db, calculator, floor):
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["A"], status=BookingStatus.CANCELLED)
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 120)

    assert labels(result) == ["A", "B"]


@pytest.mark.asyncio
async def test_finished_booking_vacates_table_early(test_db, calculator, floor):
    booking = await add_booking(
        test_db, time(18, 0), party_size=4, table=floor["A"], status=BookingStatus.FINISHED,
    )
    booking.finished_at = datetime(2030, 6, 14, 18, 45)
    await test_db.commit()

    assert labels(await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 60)) == ["A", "B"]
    assert labels(await calculator.check_availability(test_db, SERVICE_DATE, time(18, 30), 4, 60)) == ["B"]


@pytest.mark.asyncio
async def test_deleted_tables_never_appear(test_db, calculator, catalog, floor):
    await catalog.soft_delete_table(test_db, floor["A"].id)
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 120)

    assert labels(result) == ["B"]


@pytest.mark.asyncio
async def test_blocks_remove_tables(test_db, calculator, floor):
    await add_block(test_db, time(18, 0), time(20, 0), tables=[floor["B"]])
    await test_db.commit()

    assert labels(await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 60)) == ["A"]
    assert labels(await calculator.check_availability(test_db, SERVICE_DATE, time(20, 0), 4, 60)) == ["A", "B"]


@pytest.mark.asyncio
async def test_venue_wide_block(test_db, calculator, floor):
    await add_block(test_db, time(12, 0), time(15, 0))
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(14, 0), 4, 60)

    assert result.available is False
    assert result.reason == REASON_ALL_BOOKED


@pytest.mark.asyncio
async def test_offline_tables_only_for_staff(test_db, calculator, floor):
    await add_table(test_db, "Bar", 4, rank=0, online=False)
    await test_db.commit()

    online = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 60)
    staff = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 4, 60, online_only=False)

    assert labels(online) == ["A", "B"]
    # Unranked resources follow the ranked ones
    assert labels(staff) == ["A", "B", "Bar"]


@pytest.mark.asyncio
async def test_join_group_with_offline_member_offered_online(test_db, calculator, joined_floor):
    """B taken offline: G={A,B} still seats an online party of 8"""
    joined_floor["B"].online_bookable = False
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 8, 120)

    assert result.available is True
    assert labels(result) == ["G"]


@pytest.mark.asyncio
async def test_default_order_without_priorities(test_db, calculator, floor):
    small = await add_table(test_db, "Two", 2, rank=9)
    await test_db.commit()

    result = await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 2, 60)

    assert labels(result) == ["Two", "A", "B"]
    assert result.candidates[0].id == small.id


@pytest.mark.asyncio
async def test_invalid_requests_are_rejected(test_db, calculator, floor):
    with pytest.raises(ValidationError):
        await calculator.check_availability(test_db, SERVICE_DATE, time(19, 0), 0, 60)
    with pytest.raises(ValidationError):
        await calculator.check_availability(test_db, SERVICE_DATE, None, 4, 60)
    with pytest.raises(ValidationError):
        await calculator.check_availability(test_db, "2030-06-14", time(19, 0), 4, 60)


@pytest.mark.asyncio
async def test_find_available_slots(test_db, calculator, floor):
    await add_booking(test_db, time(18, 0), party_size=4, table=floor["A"], duration=60)
    await add_booking(test_db, time(18, 0), party_size=4, table=floor["B"], duration=60)
    await test_db.commit()

    slots = calculator.find_available_slots(
        test_db, SERVICE_DATE, 4, time(17, 0), time(20, 0), duration_minutes=60, step_minutes=60,
    )

    assert await slots.to_list() == [time(17, 0), time(19, 0), time(20, 0)]


@pytest.mark.asyncio
async def test_available_slots_can_be_iterated_again(test_db, calculator, floor):
    slots = calculator.find_available_slots(
        test_db, SERVICE_DATE, 4, time(19, 0), time(20, 0), duration_minutes=60, step_minutes=60,
    )
    assert [slot async for slot in slots] == [time(19, 0), time(20, 0)]

    await add_booking(test_db, time(20, 0), party_size=4, table=floor["A"], duration=60)
    await add_booking(test_db, time(20, 0), party_size=4, table=floor["B"], duration=60)
    await test_db.commit()

    assert [slot async for slot in slots] == [time(19, 0)]


@pytest.mark.asyncio
async def test_slot_range_validation(test_db, calculator, floor):
    with pytest.raises(ValidationError):
        calculator.find_available_slots(test_db, SERVICE_DATE, 4, time(20, 0), time(19, 0))


@pytest.mark.asyncio
async def test_suggest_alternative_times_closest_first(test_db, calculator, floor):
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["A"], duration=60)
    await add_booking(test_db, time(19, 0), party_size=4, table=floor["B"], duration=60)
    await test_db.commit()

    times = await calculator.suggest_alternative_times(
        test_db, SERVICE_DATE, time(19, 0), 4, 60, window_minutes=60, step_minutes=30, limit=3,
    )

    # 18:30 and 19:30 overlap the booked hour
    assert times == [time(18, 0), time(20, 0)]
