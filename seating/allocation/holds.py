"""
Slot holds.

A guest who opens the booking form gets the best free resource for the slot
set aside for a few minutes. The hold is claimed through the same allocation
ledger as a booking, so a hold and a competing allocation can never both win
the same table. While live, the hold occupies its tables in every schedule;
once released or lapsed it stops counting without any write, and the
periodic cleanup only records the expiry.
"""

import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from seating.allocation.allocator import (
    AllocationResult, Allocator, flush_claim, load_ledgers, touch_ledgers,
)
from seating.allocation.availability import AvailabilityCalculator, validate_request
from seating.allocation.errors import (
    ConcurrencyConflictError, HoldExpiredError, NotFoundError, SlotUnavailableError, ValidationError,
)
from seating.allocation.timeslots import Window
from seating.config import settings
from seating.models.hold import SlotHold

logger = structlog.get_logger()


class SlotHoldService:
    """Creates, extends, releases and converts slot holds"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        calculator: AvailabilityCalculator,
        allocator: Allocator,
        clock=datetime.now,
        hold_minutes: int = settings.slot_hold_minutes,
        extend_seconds: int = settings.slot_hold_extend_seconds,
        retry_limit: int = settings.allocation_retry_limit,
    ):
        self.session_factory = session_factory
        self.calculator = calculator
        self.allocator = allocator
        self.clock = clock
        self.hold_minutes = hold_minutes
        self.extend_seconds = extend_seconds
        self.retry_limit = retry_limit

    async def create_hold(
        self,
        booking_date: date,
        start_time: time,
        party_size: int,
        duration_minutes: Optional[int] = None,
        online_only: bool = True,
    ) -> SlotHold:
        """
        Hold the top-ranked free resource for the slot.

        Raises SlotUnavailableError when every suitable resource is booked,
        blocked or already held.
        """
        duration_minutes = duration_minutes or self.calculator.default_duration_minutes
        validate_request(booking_date, start_time, party_size, duration_minutes)
        window = Window.of(start_time, duration_minutes)

        attempts = 0
        while True:
            attempts += 1
            async with self.session_factory() as db:
                try:
                    ledgers = await load_ledgers(db, booking_date)
                    schedule = await self.calculator.load_schedule(db, booking_date)
                    order = await self.calculator.priorities.get_priority_order(db, party_size)
                    ranked = self.calculator.rank(schedule, order, party_size, window, online_only)
                    if not ranked.available:
                        raise SlotUnavailableError(
                            "This time slot is currently held or booked by another guest",
                            booking_date=booking_date.isoformat(),
                            start_time=start_time.strftime("%H:%M"),
                            reason=ranked.reason,
                        )

                    resource = ranked.candidates[0]
                    now = self.clock()
                    hold = SlotHold(
                        hold_token=uuid.uuid4(),
                        booking_date=booking_date,
                        start_time=start_time,
                        duration_minutes=duration_minutes,
                        party_size=party_size,
                        table_id=resource.primary_table_id,
                        join_group_id=resource.id if resource.is_join_group else None,
                        locked_at=now,
                        expires_at=now + timedelta(minutes=self.hold_minutes),
                        reason="created",
                    )
                    db.add(hold)
                    touch_ledgers(db, ledgers, resource.table_ids, booking_date)
                    await flush_claim(db, hold_token=str(hold.hold_token))
                    await db.commit()
                except ConcurrencyConflictError:
                    await db.rollback()
                    logger.warning("Slot hold lost a race", attempt=attempts, retry_limit=self.retry_limit)
                    if attempts > self.retry_limit:
                        raise
                    continue

            logger.info(
                "Slot held",
                hold_token=str(hold.hold_token),
                booking_date=booking_date.isoformat(),
                start_time=start_time.strftime("%H:%M"),
                party_size=party_size,
                table_id=str(hold.table_id),
                expires_at=hold.expires_at.isoformat(),
            )
            return hold

    async def extend_hold(self, hold_token: UUID) -> SlotHold:
        """
        Push the expiry to at most extend_seconds from now, never past
        hold_minutes after the hold was taken.
        """
        async with self.session_factory() as db:
            hold = await self.get_live(db, hold_token)
            now = self.clock()
            hold.expires_at = min(
                now + timedelta(seconds=self.extend_seconds),
                hold.locked_at + timedelta(minutes=self.hold_minutes),
            )
            hold.reason = "extended"
            hold.updated_at = now
            await db.commit()

        logger.info("Slot hold extended", hold_token=str(hold_token), expires_at=hold.expires_at.isoformat())
        return hold

    async def release_hold(self, hold_token: UUID, reason: str = "released") -> Tuple[SlotHold, bool]:
        """Release a hold; returns the hold and whether it was already released"""
        async with self.session_factory() as db:
            hold = await self._get(db, hold_token)
            if hold.released_at is not None:
                logger.info("Slot hold already released", hold_token=str(hold_token), reason=hold.reason)
                return hold, True

            now = self.clock()
            hold.released_at = now
            hold.reason = reason
            hold.updated_at = now
            await db.commit()

        logger.info("Slot hold released", hold_token=str(hold_token), reason=reason)
        return hold, False

    async def release_expired(self) -> int:
        """Mark lapsed holds released with reason expired; returns how many"""
        now = self.clock()
        async with self.session_factory() as db:
            result = await db.execute(
                select(SlotHold).where(SlotHold.released_at.is_(None), SlotHold.expires_at <= now)
            )
            expired = list(result.scalars().all())
            for hold in expired:
                hold.released_at = now
                hold.reason = "expired"
                hold.updated_at = now
            await db.commit()

        if expired:
            logger.info(
                "Expired slot holds released",
                count=len(expired),
                dates=sorted({hold.booking_date.isoformat() for hold in expired}),
            )
        return len(expired)

    async def convert(self, hold_token: UUID, booking_id: UUID) -> AllocationResult:
        """
        Allocate a stored booking onto the resource its hold kept aside.

        The hold is released in the same transaction as the allocation. A hold
        that lapsed in the meantime no longer protects anything, and the
        booking is allocated like any other.
        """
        attempts = 0
        while True:
            attempts += 1
            async with self.session_factory() as db:
                try:
                    booking = await self.allocator.bookings.get(db, booking_id)
                    hold = await self._get(db, hold_token)
                    if not hold.is_live(self.clock()):
                        break
                    if (hold.booking_date, hold.start_time) != (booking.booking_date, booking.booking_time):
                        raise ValidationError(
                            "Booking does not match the held slot",
                            booking_id=str(booking_id),
                            hold_token=str(hold_token),
                        )

                    now = self.clock()
                    hold.released_at = now
                    hold.reason = "converted"
                    hold.updated_at = now
                    await db.flush()

                    result = await self.allocator.assign(
                        db,
                        booking,
                        preferred_table_id=hold.table_id if hold.join_group_id is None else None,
                        preferred_join_group_id=hold.join_group_id,
                        reason="hold_converted",
                    )
                    await db.commit()
                except ConcurrencyConflictError:
                    await db.rollback()
                    if attempts > self.retry_limit:
                        raise
                    continue

            result.attempts = attempts
            logger.info(
                "Slot hold converted",
                hold_token=str(hold_token),
                booking_id=str(booking_id),
                table_id=str(result.table_id) if result.table_id else None,
            )
            return result

        logger.info("Slot hold lapsed before conversion", hold_token=str(hold_token), booking_id=str(booking_id))
        return await self.allocator.allocate(booking_id)

    async def get_live(self, db: AsyncSession, hold_token: UUID) -> SlotHold:
        """A hold that is not released; raises HoldExpiredError once it lapsed"""
        hold = await self._get(db, hold_token)
        if hold.released_at is not None:
            raise NotFoundError("Hold not found or already released", hold_token=str(hold_token))
        if hold.expires_at <= self.clock():
            raise HoldExpiredError("Hold has expired", hold_token=str(hold_token))
        return hold

    async def _get(self, db: AsyncSession, hold_token: UUID) -> SlotHold:
        result = await db.execute(select(SlotHold).where(SlotHold.hold_token == hold_token))
        hold = result.scalar_one_or_none()
        if hold is None:
            raise NotFoundError("Hold not found", hold_token=str(hold_token))
        return hold
