"""
Allocator: commits bookings to tables.

Choosing a table and writing the choice happen in one transaction guarded by
compare-and-swap writes:

1. the allocation ledger rows of the date are read first, recording the
   version of every table's row,
2. the day's occupancy is read and candidates are ranked,
3. the ledger rows of the chosen tables are bumped (``version_id_col``) or
   inserted (unique on table and date), and the booking row is updated
   against its own version.

If a competing writer placed a booking on any of those tables after step 1,
the flush in step 3 matches zero rows or violates the unique key, and the
attempt fails with ConcurrencyConflictError instead of double-booking the
table. The attempt is then retried on fresh data.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
import structlog

from seating.allocation.availability import AvailabilityCalculator, AvailabilityResult, REASON_ALL_BOOKED
from seating.allocation.bookings import BookingRepository, allocation_snapshot
from seating.allocation.catalog import Resource
from seating.allocation.errors import (
    ConcurrencyConflictError, DataIntegrityError, NoCapacityError, ValidationError,
)
from seating.allocation.timeslots import Window
from seating.config import settings
from seating.models.booking import Booking, ALLOCATABLE_STATUSES
from seating.models.ledger import AllocationLedger, LEDGER_UNIQUE_KEY

logger = structlog.get_logger()


@dataclass
class AllocationResult:
    """Outcome of an allocation; success is False when the booking is left unallocated"""
    booking_id: UUID
    success: bool
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    changed: bool = False
    attempts: int = 1
    reason: Optional[str] = None

    @property
    def is_unallocated(self) -> bool:
        return self.table_id is None


@dataclass
class AllocationPlan:
    """Read phase of an allocation: the chosen resource and the ledger versions it was chosen under"""
    booking: Booking
    window: Window
    resource: Optional[Resource]
    ledgers: Dict[UUID, AllocationLedger]
    reason: Optional[str] = None


class Allocator:
    """Assigns bookings to resources with concurrency-safe, idempotent semantics"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        calculator: AvailabilityCalculator,
        bookings: BookingRepository,
        retry_limit: int = settings.allocation_retry_limit,
        actor: str = settings.system_actor,
    ):
        self.session_factory = session_factory
        self.calculator = calculator
        self.bookings = bookings
        self.retry_limit = retry_limit
        self.actor = actor

    async def allocate(
        self,
        booking_id: UUID,
        party_size: Optional[int] = None,
        booking_date: Optional[date] = None,
        booking_time: Optional[time] = None,
        force_reassign: bool = False,
        actor: Optional[str] = None,
    ) -> AllocationResult:
        """
        Place a stored booking on the best free resource.

        Returns success=False (booking flagged unallocated) when nothing fits.
        A booking that already holds a table is left alone unless
        force_reassign is set. Raises ConcurrencyConflictError only once the
        retry budget is spent.
        """
        actor = actor or self.actor
        attempts = 0

        while True:
            attempts += 1
            async with self.session_factory() as db:
                try:
                    booking = await self.bookings.get(db, booking_id)
                    self._check_request(booking, party_size, booking_date, booking_time)

                    if booking.is_allocated and not force_reassign:
                        logger.info(
                            "Booking already allocated",
                            booking_id=str(booking_id),
                            table_id=str(booking.table_id),
                        )
                        return AllocationResult(
                            booking_id=booking_id,
                            success=True,
                            table_id=booking.table_id,
                            join_group_id=booking.join_group_id,
                            attempts=attempts,
                        )

                    reason = "force_reassign" if force_reassign else "allocate"
                    result = await self.assign(db, booking, actor=actor, reason=reason)
                    await db.commit()
                except ConcurrencyConflictError:
                    await db.rollback()
                    logger.warning(
                        "Allocation lost a race",
                        booking_id=str(booking_id),
                        attempt=attempts,
                        retry_limit=self.retry_limit,
                    )
                    if attempts > self.retry_limit:
                        logger.error(
                            "Allocation retry budget exhausted; booking stays unallocated",
                            booking_id=str(booking_id),
                            attempts=attempts,
                        )
                        raise
                    continue

            result.attempts = attempts
            logger.info(
                "Allocation committed",
                booking_id=str(booking_id),
                success=result.success,
                table_id=str(result.table_id) if result.table_id else None,
                join_group_id=str(result.join_group_id) if result.join_group_id else None,
                attempts=attempts,
                reason=result.reason,
            )
            return result

    async def assign(
        self,
        db: AsyncSession,
        booking: Booking,
        preferred_table_id: Optional[UUID] = None,
        preferred_join_group_id: Optional[UUID] = None,
        ignore_capacity: bool = False,
        online_only: bool = True,
        actor: Optional[str] = None,
        reason: str = "allocate",
    ) -> AllocationResult:
        """Single allocation attempt inside the caller's transaction (flushes, never commits)"""
        plan = await self.plan(
            db,
            booking,
            preferred_table_id=preferred_table_id,
            preferred_join_group_id=preferred_join_group_id,
            ignore_capacity=ignore_capacity,
            online_only=online_only,
        )
        return await self.apply(db, plan, actor=actor or self.actor, reason=reason)

    async def plan(
        self,
        db: AsyncSession,
        booking: Booking,
        preferred_table_id: Optional[UUID] = None,
        preferred_join_group_id: Optional[UUID] = None,
        ignore_capacity: bool = False,
        online_only: bool = True,
    ) -> AllocationPlan:
        """Read phase: ledger versions first, then occupancy and ranking"""
        ledgers = await load_ledgers(db, booking.booking_date)
        schedule = await self.calculator.load_schedule(db, booking.booking_date, exclude_booking_id=booking.id)
        window = Window.of(booking.booking_time, booking.duration_minutes)

        if preferred_table_id is not None or preferred_join_group_id is not None:
            preferred = schedule.find(table_id=preferred_table_id, join_group_id=preferred_join_group_id)
            if (
                preferred is not None
                and schedule.is_free(preferred, window)
                and (ignore_capacity or preferred.fits(booking.party_size))
            ):
                return AllocationPlan(booking=booking, window=window, resource=preferred, ledgers=ledgers)

            logger.info(
                "Preferred resource unavailable, ranking alternatives",
                booking_id=str(booking.id),
                table_id=str(preferred_table_id) if preferred_table_id else None,
                join_group_id=str(preferred_join_group_id) if preferred_join_group_id else None,
            )

        order = await self.calculator.priorities.get_priority_order(db, booking.party_size)
        try:
            resource = self._choose(self.calculator.rank(schedule, order, booking.party_size, window, online_only))
        except NoCapacityError as exc:
            logger.info("No capacity for booking", booking_id=str(booking.id), reason=exc.message)
            return AllocationPlan(booking=booking, window=window, resource=None, ledgers=ledgers, reason=exc.message)
        return AllocationPlan(booking=booking, window=window, resource=resource, ledgers=ledgers)

    async def apply(
        self,
        db: AsyncSession,
        plan: AllocationPlan,
        actor: Optional[str] = None,
        reason: str = "allocate",
    ) -> AllocationResult:
        """Write phase: compare-and-swap the ledger rows and the booking"""
        actor = actor or self.actor
        booking = plan.booking
        before = allocation_snapshot(booking)

        if plan.resource is None:
            booking.table_id = None
            booking.join_group_id = None
            booking.is_unallocated = True
            self.bookings.audit(db, "mark_unallocated", booking, actor, plan.reason or reason, before)
            await flush_claim(db, booking_id=str(booking.id))
            return AllocationResult(
                booking_id=booking.id,
                success=False,
                changed=before["table_id"] is not None,
                reason=plan.reason,
            )

        resource = plan.resource
        touch_ledgers(db, plan.ledgers, resource.table_ids, booking.booking_date, booking_id=booking.id)

        booking.table_id = resource.primary_table_id
        booking.join_group_id = resource.id if resource.is_join_group else None
        booking.is_unallocated = False
        self.bookings.audit(db, "allocate", booking, actor, reason, before)
        await flush_claim(db, booking_id=str(booking.id))

        return AllocationResult(
            booking_id=booking.id,
            success=True,
            table_id=booking.table_id,
            join_group_id=booking.join_group_id,
            changed=before["table_id"] != str(booking.table_id) or before["join_group_id"] != (
                str(booking.join_group_id) if booking.join_group_id else None
            ),
        )

    @staticmethod
    def _choose(ranked: AvailabilityResult) -> Resource:
        if not ranked.available:
            raise NoCapacityError(ranked.reason or REASON_ALL_BOOKED)
        return ranked.candidates[0]

    @staticmethod
    def _check_request(
        booking: Booking,
        party_size: Optional[int],
        booking_date: Optional[date],
        booking_time: Optional[time],
    ) -> None:
        if booking.status not in ALLOCATABLE_STATUSES:
            raise ValidationError(
                f"Cannot allocate a {booking.status.value} booking",
                booking_id=str(booking.id),
            )
        if party_size is not None and party_size != booking.party_size:
            raise ValidationError("Party size does not match the booking", booking_id=str(booking.id))
        if booking_date is not None and booking_date != booking.booking_date:
            raise ValidationError("Date does not match the booking", booking_id=str(booking.id))
        if booking_time is not None and booking_time != booking.booking_time:
            raise ValidationError("Time does not match the booking", booking_id=str(booking.id))


async def load_ledgers(db: AsyncSession, ledger_date: date) -> Dict[UUID, AllocationLedger]:
    """Ledger rows of a date keyed by table; read before occupancy so their versions guard the write"""
    result = await db.execute(select(AllocationLedger).where(AllocationLedger.ledger_date == ledger_date))
    return {ledger.table_id: ledger for ledger in result.scalars().all()}


def touch_ledgers(
    db: AsyncSession,
    ledgers: Dict[UUID, AllocationLedger],
    table_ids: Iterable[UUID],
    ledger_date: date,
    booking_id: Optional[UUID] = None,
) -> None:
    """Bump the version of each table's ledger row, inserting the rows that do not exist yet"""
    now = datetime.utcnow()
    for table_id in table_ids:
        ledger = ledgers.get(table_id)
        if ledger is None:
            ledger = AllocationLedger(table_id=table_id, ledger_date=ledger_date)
            db.add(ledger)
            ledgers[table_id] = ledger
        ledger.last_booking_id = booking_id
        ledger.updated_at = now


def is_ledger_collision(exc: IntegrityError) -> bool:
    """True when the violation is two writers inserting the same table's ledger row"""
    message = str(exc.orig)
    if LEDGER_UNIQUE_KEY in message:
        return True
    # SQLite names the columns instead of the constraint
    return "UNIQUE" in message.upper() and AllocationLedger.__tablename__ in message


async def flush_claim(db: AsyncSession, **context) -> None:
    """
    Flush the compare-and-swap writes of an allocation or hold.

    Only a stale version or a ledger key collision is a lost race; any other
    constraint violation is a data error and is never retried. Callers pass
    identifiers as plain values since a failed flush expires every instance
    in the session.
    """
    try:
        await db.flush()
    except StaleDataError as exc:
        raise ConcurrencyConflictError(
            "A competing allocation changed the same table or booking",
            **context,
        ) from exc
    except IntegrityError as exc:
        if not is_ledger_collision(exc):
            raise DataIntegrityError(
                "Allocation write violates a store constraint",
                detail=str(exc.orig),
                **context,
            ) from exc
        raise ConcurrencyConflictError(
            "A competing allocation claimed the same table first",
            **context,
        ) from exc
