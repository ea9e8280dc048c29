"""Background job tasks"""

from datetime import date
from typing import Optional
import asyncio
import structlog

from seating.jobs.celery_app import celery_app
from seating.config import settings

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)


def build_allocator():
    """Allocator wired to the process-wide session factory"""
    from seating.database import SessionLocal
    from seating.allocation.allocator import Allocator
    from seating.allocation.availability import AvailabilityCalculator
    from seating.allocation.bookings import BookingRepository
    from seating.allocation.catalog import ResourceCatalog
    from seating.allocation.priorities import PriorityDirectory

    catalog = ResourceCatalog()
    bookings = BookingRepository()
    calculator = AvailabilityCalculator(catalog, PriorityDirectory(catalog), bookings)
    return Allocator(SessionLocal, calculator, bookings)


@celery_app.task(name="sweep_unallocated_bookings")
def sweep_unallocated_bookings(booking_date: Optional[str] = None):
    """Retry allocation for bookings without a table (today onward by default)"""
    logger.info("Sweeping unallocated bookings", booking_date=booking_date)

    async def _sweep():
        from seating.database import SessionLocal, engine
        from seating.allocation.backfill import BackfillSweeper

        allocator = build_allocator()
        sweeper = BackfillSweeper(
            SessionLocal,
            allocator,
            allocator.bookings,
            max_attempts=settings.sweep_max_attempts,
        )

        try:
            report = await sweeper.sweep(date.fromisoformat(booking_date) if booking_date else None)
        finally:
            # Connections are bound to this event loop
            await engine.dispose()
        return report.to_dict()

    return run_async(_sweep())


@celery_app.task(name="release_expired_holds")
def release_expired_holds():
    """Record lapsed slot holds as released with reason expired"""

    async def _release():
        from seating.database import SessionLocal, engine
        from seating.allocation.holds import SlotHoldService

        allocator = build_allocator()
        holds = SlotHoldService(SessionLocal, allocator.calculator, allocator)

        try:
            return await holds.release_expired()
        finally:
            await engine.dispose()

    released = run_async(_release())
    logger.info("Slot hold cleanup finished", released=released)
    return {"released": released}
