"""Component wiring for the API routers"""

from datetime import datetime
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from seating.allocation.allocator import Allocator
from seating.allocation.availability import AvailabilityCalculator
from seating.allocation.backfill import BackfillSweeper
from seating.allocation.bookings import BookingRepository
from seating.allocation.catalog import ResourceCatalog
from seating.allocation.conflicts import ConflictDetector
from seating.allocation.holds import SlotHoldService
from seating.allocation.priorities import PriorityDirectory
from seating.allocation.walkin import WalkInFlowStore, WalkInOrchestrator
from seating.config import settings
from seating.database import get_session_factory


def get_clock() -> Callable[[], datetime]:
    """Wall clock dependency (overridden in tests)"""
    return datetime.now


def get_catalog() -> ResourceCatalog:
    return ResourceCatalog()


def get_priority_directory(catalog: ResourceCatalog = Depends(get_catalog)) -> PriorityDirectory:
    return PriorityDirectory(catalog)


def get_booking_repository(clock: Callable[[], datetime] = Depends(get_clock)) -> BookingRepository:
    return BookingRepository(clock=clock)


def get_calculator(
    catalog: ResourceCatalog = Depends(get_catalog),
    priorities: PriorityDirectory = Depends(get_priority_directory),
    bookings: BookingRepository = Depends(get_booking_repository),
) -> AvailabilityCalculator:
    return AvailabilityCalculator(
        catalog,
        priorities,
        bookings,
        default_duration_minutes=settings.default_duration_minutes,
        slot_step_minutes=settings.slot_step_minutes,
    )


def get_allocator(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    calculator: AvailabilityCalculator = Depends(get_calculator),
    bookings: BookingRepository = Depends(get_booking_repository),
) -> Allocator:
    return Allocator(
        session_factory,
        calculator,
        bookings,
        retry_limit=settings.allocation_retry_limit,
        actor=settings.system_actor,
    )


def get_detector(
    calculator: AvailabilityCalculator = Depends(get_calculator),
    bookings: BookingRepository = Depends(get_booking_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ConflictDetector:
    return ConflictDetector(
        calculator,
        bookings,
        clock=clock,
        min_duration_minutes=settings.walk_in_min_duration_minutes,
        double_booking_window_minutes=settings.double_booking_window_minutes,
    )


def get_orchestrator(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    detector: ConflictDetector = Depends(get_detector),
    allocator: Allocator = Depends(get_allocator),
    bookings: BookingRepository = Depends(get_booking_repository),
) -> WalkInOrchestrator:
    return WalkInOrchestrator(session_factory, detector, allocator, bookings)


def get_sweeper(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    allocator: Allocator = Depends(get_allocator),
    bookings: BookingRepository = Depends(get_booking_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BackfillSweeper:
    return BackfillSweeper(
        session_factory,
        allocator,
        bookings,
        max_attempts=settings.sweep_max_attempts,
        clock=clock,
    )


def get_flow_store(request: Request) -> WalkInFlowStore:
    """Walk-in flows live on the application for the life of the process"""
    return request.app.state.walk_in_flows


def get_hold_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    calculator: AvailabilityCalculator = Depends(get_calculator),
    allocator: Allocator = Depends(get_allocator),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SlotHoldService:
    return SlotHoldService(
        session_factory,
        calculator,
        allocator,
        clock=clock,
        hold_minutes=settings.slot_hold_minutes,
        extend_seconds=settings.slot_hold_extend_seconds,
        retry_limit=settings.allocation_retry_limit,
    )
