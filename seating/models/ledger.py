"""Allocation ledger: the compare-and-swap row behind every allocation write"""

from datetime import datetime
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from seating.database import Base

LEDGER_UNIQUE_KEY = "uq_ledger_table_date"


class AllocationLedger(Base):
    """
    One row per table and date.

    Every allocation that places a booking on a table bumps the row's version.
    An allocation that read an older version loses its flush with a
    StaleDataError, and two first-time writers collide on the unique key, so
    competing writers on the same table/date are serialized by the store.
    """
    __tablename__ = "allocation_ledgers"
    __table_args__ = (
        UniqueConstraint("table_id", "ledger_date", name=LEDGER_UNIQUE_KEY),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False)
    ledger_date = Column(Date, nullable=False)
    version = Column(Integer, nullable=False)
    last_booking_id = Column(UUID(as_uuid=True))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}
