"""Booking repository and status lifecycle"""

from datetime import date, datetime, time
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.errors import InvalidTransitionError, NotFoundError, ValidationError
from seating.models.audit import AuditLog
from seating.models.block import Block
from seating.models.booking import (
    Booking, BookingStatus, BookingSource, ALLOCATABLE_STATUSES,
)
from seating.models.guest import Guest
from seating.models.hold import SlotHold

logger = structlog.get_logger()


STATUS_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.SEATED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.SEATED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.SEATED: {BookingStatus.FINISHED},
    BookingStatus.FINISHED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}


def allocation_snapshot(booking: Booking) -> dict:
    """Allocation fields of a booking, for audit records"""
    return {
        "table_id": str(booking.table_id) if booking.table_id else None,
        "join_group_id": str(booking.join_group_id) if booking.join_group_id else None,
        "is_unallocated": booking.is_unallocated,
        "status": booking.status.value if booking.status else None,
    }


class BookingRepository:
    """Store access for bookings, blocks, slot holds and their audit trail"""

    def __init__(self, clock=datetime.now):
        self.clock = clock

    async def get(self, db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", booking_id=str(booking_id))
        return booking

    async def for_date(self, db: AsyncSession, booking_date: date) -> List[Booking]:
        """Every booking on the date that still holds its window"""
        result = await db.execute(
            select(Booking).where(
                Booking.booking_date == booking_date,
                Booking.status != BookingStatus.CANCELLED,
            )
        )
        return list(result.scalars().all())

    async def blocks_for_date(self, db: AsyncSession, booking_date: date) -> List[Block]:
        result = await db.execute(select(Block).where(Block.block_date == booking_date))
        return list(result.scalars().all())

    async def holds_for_date(self, db: AsyncSession, booking_date: date) -> List[SlotHold]:
        """Holds on the date that are neither released nor lapsed"""
        result = await db.execute(
            select(SlotHold).where(
                SlotHold.booking_date == booking_date,
                SlotHold.released_at.is_(None),
                SlotHold.expires_at > self.clock(),
            )
        )
        return list(result.scalars().all())

    async def list_unallocated(
        self,
        db: AsyncSession,
        booking_date: Optional[date] = None,
        from_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """Backlog of bookings waiting for a table, oldest slot first"""
        query = select(Booking).where(
            Booking.is_unallocated == True,
            Booking.status.in_(ALLOCATABLE_STATUSES),
        )
        if booking_date is not None:
            query = query.where(Booking.booking_date == booking_date)
        elif from_date is not None:
            query = query.where(Booking.booking_date >= from_date)

        query = query.order_by(Booking.booking_date, Booking.booking_time, Booking.created_at)
        if limit is not None:
            query = query.limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def active_guest_bookings(
        self,
        db: AsyncSession,
        booking_date: date,
        guest_id: Optional[UUID] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> List[Booking]:
        """Pending, confirmed or seated bookings on the date for the same guest"""
        matchers = []
        if guest_id is not None:
            matchers.append(Guest.id == guest_id)
        if email:
            matchers.append(Guest.email == email)
        if phone:
            matchers.append(Guest.phone == phone)
        if not matchers:
            return []

        result = await db.execute(
            select(Booking)
            .join(Guest, Booking.guest_id == Guest.id)
            .where(
                Booking.booking_date == booking_date,
                Booking.status.in_(ALLOCATABLE_STATUSES),
                or_(*matchers),
            )
            .order_by(Booking.booking_time)
        )
        return list(result.scalars().all())

    async def create_booking(
        self,
        db: AsyncSession,
        party_size: int,
        booking_date: date,
        booking_time: time,
        duration_minutes: int,
        guest_id: Optional[UUID] = None,
        guest_name: Optional[str] = None,
        status: BookingStatus = BookingStatus.PENDING,
        source: BookingSource = BookingSource.BOOKING,
        notes: Optional[str] = None,
    ) -> Booking:
        """Insert a booking with no table; allocation is a separate step"""
        if party_size is None or party_size < 1:
            raise ValidationError("Party size must be at least 1", party_size=party_size)
        if duration_minutes is None or duration_minutes < 1:
            raise ValidationError("Duration must be positive", duration_minutes=duration_minutes)

        booking = Booking(
            guest_id=guest_id,
            guest_name=guest_name,
            party_size=party_size,
            booking_date=booking_date,
            booking_time=booking_time,
            duration_minutes=duration_minutes,
            table_id=None,
            join_group_id=None,
            is_unallocated=True,
            status=status,
            source=source,
            notes=notes,
        )
        db.add(booking)
        await db.flush()
        return booking

    async def transition_status(
        self,
        db: AsyncSession,
        booking: Booking,
        status: BookingStatus,
        actor: str = "system",
        actor_type: str = "system",
    ) -> Booking:
        """Move a booking to a new status; the caller commits"""
        if status == booking.status:
            return booking
        if status not in STATUS_TRANSITIONS[booking.status]:
            raise InvalidTransitionError(
                f"Cannot move booking from {booking.status.value} to {status.value}",
                booking_id=str(booking.id),
            )

        before = allocation_snapshot(booking)
        booking.status = status
        if status == BookingStatus.FINISHED:
            booking.finished_at = self.clock()

        self.audit(
            db, "status_change", booking, actor, f"status -> {status.value}", before, actor_type=actor_type,
        )
        await db.flush()

        logger.info(
            "Booking status changed",
            booking_id=str(booking.id),
            from_status=before["status"],
            to_status=status.value,
        )
        return booking

    def audit(
        self,
        db: AsyncSession,
        action: str,
        booking: Booking,
        actor: str,
        reason: str,
        before: Optional[dict] = None,
        actor_type: str = "system",
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_name=actor,
            action=action,
            resource_type="booking",
            resource_id=booking.id,
            data_json={
                "reason": reason,
                "before": before,
                "after": allocation_snapshot(booking),
            },
            created_at=datetime.utcnow(),
        )
        db.add(entry)
        return entry
