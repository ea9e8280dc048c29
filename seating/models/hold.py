"""Time-limited slot holds"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, Time, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base


class SlotHold(Base):
    """
    A resource kept aside for a guest who is still filling in the booking form.

    A hold is live until released_at is set or expires_at passes. Live holds
    occupy their tables exactly like bookings do.
    """
    __tablename__ = "slot_holds"
    __table_args__ = (
        CheckConstraint("party_size > 0", name="ck_slot_holds_party_size"),
        CheckConstraint("duration_minutes > 0", name="ck_slot_holds_duration"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hold_token = Column(UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    party_size = Column(Integer, nullable=False)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False)
    join_group_id = Column(UUID(as_uuid=True), ForeignKey("join_groups.id"))

    locked_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    released_at = Column(DateTime)
    # created, extended, released, converted or expired
    reason = Column(String(50), nullable=False, default="created")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_live(self, now: datetime) -> bool:
        return self.released_at is None and self.expires_at > now
