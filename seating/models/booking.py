"""Booking model"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, Time, DateTime, Enum, ForeignKey, Text,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from seating.database import Base


class BookingStatus(str, enum.Enum):
    """Closed set of booking states"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# States the allocator and the sweeper are allowed to place
ALLOCATABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.SEATED)


class BookingSource(str, enum.Enum):
    BOOKING = "booking"
    WALK_IN = "walk_in"


class Booking(Base):
    """A party occupying a resource for a time window on a date"""
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "(is_unallocated AND table_id IS NULL) OR (NOT is_unallocated AND table_id IS NOT NULL)",
            name="ck_bookings_unallocated_table",
        ),
        CheckConstraint("party_size > 0", name="ck_bookings_party_size"),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    guest_id = Column(UUID(as_uuid=True), ForeignKey("guests.id"))
    guest_name = Column(String(255))

    # Window
    party_size = Column(Integer, nullable=False)
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Allocation
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"))
    join_group_id = Column(UUID(as_uuid=True), ForeignKey("join_groups.id"))
    is_unallocated = Column(Boolean, nullable=False, default=True)

    # Status
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    source = Column(Enum(BookingSource), nullable=False, default=BookingSource.BOOKING)
    finished_at = Column(DateTime)

    notes = Column(Text)

    # Optimistic lock for allocation writes
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    guest = relationship("Guest", back_populates="bookings")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_allocated(self) -> bool:
        return not self.is_unallocated and self.table_id is not None
