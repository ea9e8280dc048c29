"""Backfill sweep: retry allocation for bookings left without a table"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from seating.allocation.allocator import Allocator
from seating.allocation.bookings import BookingRepository
from seating.allocation.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from seating.config import settings

logger = structlog.get_logger()


@dataclass
class SweepReport:
    booking_date: Optional[date] = None
    attempted: int = 0
    allocated: int = 0
    still_unallocated: int = 0
    failed: int = 0
    allocated_ids: List[UUID] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["booking_date"] = self.booking_date.isoformat() if self.booking_date else None
        data["allocated_ids"] = [str(booking_id) for booking_id in self.allocated_ids]
        return data


class BackfillSweeper:
    """
    Re-invokes the allocator for the unallocated backlog.

    Each booking is allocated in its own transaction, so a sweep that is
    cancelled part way keeps what it already committed. Running alongside
    live booking creation is safe because every write goes through the
    allocator's compare-and-swap.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        allocator: Allocator,
        bookings: BookingRepository,
        max_attempts: int = settings.sweep_max_attempts,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.allocator = allocator
        self.bookings = bookings
        self.max_attempts = max_attempts
        self.clock = clock

    async def sweep(self, booking_date: Optional[date] = None) -> SweepReport:
        """Allocate the backlog for booking_date, or for today onward when omitted"""
        async with self.session_factory() as db:
            backlog = await self.bookings.list_unallocated(
                db,
                booking_date=booking_date,
                from_date=None if booking_date else self.clock().date(),
                limit=self.max_attempts,
            )
            booking_ids = [booking.id for booking in backlog]

        report = SweepReport(booking_date=booking_date)
        for booking_id in booking_ids:
            report.attempted += 1
            try:
                result = await self.allocator.allocate(booking_id, actor="backfill")
            except ConcurrencyConflictError:
                report.failed += 1
                continue
            except (ValidationError, NotFoundError) as exc:
                # Cancelled or removed since the backlog was read
                logger.info("Skipping booking in sweep", booking_id=str(booking_id), error=exc.message)
                report.failed += 1
                continue

            if result.success:
                report.allocated += 1
                report.allocated_ids.append(booking_id)
            else:
                report.still_unallocated += 1

        logger.info("Backfill sweep finished", **report.to_dict())
        return report
