"""Floor resources: tables and join groups"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Enum, JSON
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base


class TableStatus(str, enum.Enum):
    """Table lifecycle; tables are never hard-deleted"""
    ACTIVE = "active"
    DELETED = "deleted"


class Table(Base):
    """A single physical seating resource"""
    __tablename__ = "tables"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    label = Column(String(50), nullable=False)
    seat_count = Column(Integer, nullable=False)
    section_id = Column(String(50))

    # Default ordering when no per-party-size priorities exist
    priority_rank = Column(Integer, nullable=False, default=0)
    online_bookable = Column(Boolean, nullable=False, default=True)

    # Status
    status = Column(Enum(TableStatus), nullable=False, default=TableStatus.ACTIVE)
    deleted_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == TableStatus.ACTIVE


class JoinGroup(Base):
    """Tables physically combined to seat a larger party"""
    __tablename__ = "join_groups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)

    # List of table ids (as strings), at least two
    member_table_ids = Column(JSON, nullable=False, default=list)

    min_party_size = Column(Integer, nullable=False, default=1)
    max_party_size = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def member_ids(self) -> list[uuid.UUID]:
        return [uuid.UUID(str(table_id)) for table_id in self.member_table_ids or []]

    def accepts(self, party_size: int) -> bool:
        return self.min_party_size <= party_size <= self.max_party_size
