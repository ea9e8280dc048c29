"""Database models"""

from seating.models.table import Table, TableStatus, JoinGroup
from seating.models.priority import PriorityEntry, PriorityItemType
from seating.models.guest import Guest
from seating.models.booking import Booking, BookingStatus, BookingSource, ALLOCATABLE_STATUSES
from seating.models.block import Block
from seating.models.ledger import AllocationLedger
from seating.models.hold import SlotHold
from seating.models.audit import AuditLog

__all__ = [
    "Table",
    "TableStatus",
    "JoinGroup",
    "PriorityEntry",
    "PriorityItemType",
    "Guest",
    "Booking",
    "BookingStatus",
    "BookingSource",
    "ALLOCATABLE_STATUSES",
    "Block",
    "AllocationLedger",
    "SlotHold",
    "AuditLog",
]
