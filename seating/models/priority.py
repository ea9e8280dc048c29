"""Per-party-size booking priorities"""

import uuid
import enum
from sqlalchemy import Column, Integer, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base


class PriorityItemType(str, enum.Enum):
    """Kind of resource a priority entry points at"""
    TABLE = "table"
    JOIN_GROUP = "join_group"


class PriorityEntry(Base):
    """Preference rank of one resource for one party size"""
    __tablename__ = "booking_priorities"
    __table_args__ = (
        UniqueConstraint("party_size", "item_type", "item_id", name="uq_priority_item"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    party_size = Column(Integer, nullable=False, index=True)
    item_type = Column(Enum(PriorityItemType), nullable=False)
    item_id = Column(UUID(as_uuid=True), nullable=False)

    # Dense 1..N within a party size
    priority_rank = Column(Integer, nullable=False)

    @property
    def key(self) -> tuple:
        return (self.item_type, self.item_id)
