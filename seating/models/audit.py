"""Audit log model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base


class AuditLog(Base):
    """Audit trail for allocation and lifecycle changes"""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Actor information
    actor_type = Column(String(50))  # user, system
    actor_name = Column(String(255))

    # Action details
    action = Column(String(100), nullable=False)  # allocate, mark_unallocated, status_change, etc.
    resource_type = Column(String(50))  # booking, table, priority
    resource_id = Column(UUID(as_uuid=True))

    # Change data
    data_json = Column(JSON)  # {"reason": ..., "before": {...}, "after": {...}}

    created_at = Column(DateTime, default=datetime.utcnow)
