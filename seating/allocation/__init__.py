"""Table allocation and availability engine"""

from seating.allocation.allocator import Allocator, AllocationResult
from seating.allocation.availability import AvailabilityCalculator, AvailabilityResult
from seating.allocation.backfill import BackfillSweeper, SweepReport
from seating.allocation.bookings import BookingRepository
from seating.allocation.catalog import Resource, ResourceCatalog
from seating.allocation.conflicts import Conflict, ConflictDetector, ProposedSeating
from seating.allocation.priorities import PriorityDirectory
from seating.allocation.walkin import WalkInFlow, WalkInFlowStore, WalkInOrchestrator

__all__ = [
    "Allocator",
    "AllocationResult",
    "AvailabilityCalculator",
    "AvailabilityResult",
    "BackfillSweeper",
    "SweepReport",
    "BookingRepository",
    "Resource",
    "ResourceCatalog",
    "Conflict",
    "ConflictDetector",
    "ProposedSeating",
    "PriorityDirectory",
    "WalkInFlow",
    "WalkInFlowStore",
    "WalkInOrchestrator",
]
