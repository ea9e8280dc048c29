"""Time blocks that take tables out of service"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, Time, DateTime, JSON
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base


class Block(Base):
    """Blocked window on a date; no table ids means the whole venue"""
    __tablename__ = "blocks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    table_ids = Column(JSON)
    reason = Column(String(255))

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_venue_wide(self) -> bool:
        return not self.table_ids
