"""Test configuration and fixtures"""

from datetime import date, datetime, time

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from seating.main import app
from seating.database import Base, get_session_factory
from seating.api.deps import get_clock
from seating.allocation.allocator import Allocator
from seating.allocation.availability import AvailabilityCalculator
from seating.allocation.backfill import BackfillSweeper
from seating.allocation.bookings import BookingRepository
from seating.allocation.catalog import ResourceCatalog
from seating.allocation.conflicts import ConflictDetector
from seating.allocation.holds import SlotHoldService
from seating.allocation.priorities import PriorityDirectory
from seating.allocation.walkin import WalkInFlowStore, WalkInOrchestrator
from seating.models import (
    Block, Booking, BookingSource, BookingStatus, JoinGroup, PriorityEntry, PriorityItemType, Table,
)

SERVICE_DATE = date(2030, 6, 14)
NOW = datetime(2030, 6, 14, 19, 0)


def fixed_clock():
    return NOW


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'seating.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog():
    return ResourceCatalog()


@pytest.fixture
def priorities(catalog):
    return PriorityDirectory(catalog)


@pytest.fixture
def bookings():
    return BookingRepository(clock=fixed_clock)


@pytest.fixture
def calculator(catalog, priorities, bookings):
    return AvailabilityCalculator(catalog, priorities, bookings, default_duration_minutes=120, slot_step_minutes=15)


@pytest.fixture
def allocator(session_factory, calculator, bookings):
    return Allocator(session_factory, calculator, bookings, retry_limit=1, actor="test")


@pytest.fixture
def holds(session_factory, calculator, allocator):
    return SlotHoldService(
        session_factory, calculator, allocator, clock=fixed_clock, hold_minutes=5, extend_seconds=60, retry_limit=1,
    )


@pytest.fixture
def detector(calculator, bookings):
    return ConflictDetector(
        calculator, bookings, clock=fixed_clock, min_duration_minutes=30, double_booking_window_minutes=120,
    )


@pytest.fixture
def orchestrator(session_factory, detector, allocator, bookings):
    return WalkInOrchestrator(session_factory, detector, allocator, bookings)


@pytest.fixture
def sweeper(session_factory, allocator, bookings):
    return BackfillSweeper(session_factory, allocator, bookings, max_attempts=50, clock=fixed_clock)


async def add_table(db, label, seats, rank=0, online=True) -> Table:
    table = Table(label=label, seat_count=seats, priority_rank=rank, online_bookable=online)
    db.add(table)
    await db.flush()
    return table


async def add_priority(db, party_size, resource, rank, item_type=PriorityItemType.TABLE) -> PriorityEntry:
    entry = PriorityEntry(party_size=party_size, item_type=item_type, item_id=resource.id, priority_rank=rank)
    db.add(entry)
    await db.flush()
    return entry


async def add_booking(
    db,
    at: time,
    party_size: int = 2,
    table: Table = None,
    join_group: JoinGroup = None,
    duration: int = 120,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_date: date = SERVICE_DATE,
    guest_id=None,
) -> Booking:
    """Insert a booking, already seated on table (or join group) when given"""
    table_id = None
    if join_group is not None:
        table_id = join_group.member_ids[0]
    elif table is not None:
        table_id = table.id

    booking = Booking(
        guest_id=guest_id,
        guest_name="Test Guest",
        party_size=party_size,
        booking_date=booking_date,
        booking_time=at,
        duration_minutes=duration,
        table_id=table_id,
        join_group_id=join_group.id if join_group is not None else None,
        is_unallocated=table_id is None,
        status=status,
        source=BookingSource.BOOKING,
    )
    db.add(booking)
    await db.flush()
    return booking


async def add_block(db, start: time, end: time, tables=None, block_date: date = SERVICE_DATE) -> Block:
    block = Block(
        block_date=block_date,
        start_time=start,
        end_time=end,
        table_ids=[str(table.id) for table in tables] if tables else None,
        reason="Private event",
    )
    db.add(block)
    await db.flush()
    return block


@pytest.fixture
async def floor(test_db):
    """Table A (4 seats, rank 1 for parties of 4) and Table B (6 seats, rank 2)"""
    table_a = await add_table(test_db, "A", 4, rank=1)
    table_b = await add_table(test_db, "B", 6, rank=2)
    await add_priority(test_db, 4, table_a, 1)
    await add_priority(test_db, 4, table_b, 2)
    await test_db.commit()

    return {"A": table_a, "B": table_b}


@pytest.fixture
async def joined_floor(test_db, floor):
    """Join group G = {A, B} seating 5 to 10"""
    group = JoinGroup(
        name="G",
        member_table_ids=[str(floor["A"].id), str(floor["B"].id)],
        min_party_size=5,
        max_party_size=10,
        is_active=True,
    )
    test_db.add(group)
    await test_db.commit()

    return {**floor, "G": group}


@pytest.fixture
async def client(session_factory):
    """Create test client with overridden database and clock"""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.state.walk_in_flows = WalkInFlowStore()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
