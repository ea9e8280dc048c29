"""
Conflict detection for immediate (walk-in) seating.

Unlike the availability calculator, which scans every resource, the detector
looks at one already-chosen table or join group and reports what stands in
the way of seating the party there right now, with suggestions an operator
can act on.
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.availability import AvailabilityCalculator, DaySchedule
from seating.allocation.bookings import BookingRepository
from seating.allocation.catalog import Resource
from seating.allocation.errors import NotFoundError, ValidationError
from seating.allocation.timeslots import Window, format_time, to_minutes
from seating.config import settings

logger = structlog.get_logger()

MAX_ALTERNATES = 3


class ConflictType(str, enum.Enum):
    TABLE_OCCUPIED = "table_occupied"
    DOUBLE_BOOKING = "double_booking"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class Severity(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class SuggestionKind(str, enum.Enum):
    ALTERNATE_TABLE = "alternate_table"
    ALTERNATE_JOIN_GROUP = "alternate_join_group"
    SHORTEN_DURATION = "shorten_duration"
    WAIT = "wait"
    ACKNOWLEDGE = "acknowledge"


@dataclass(frozen=True)
class Suggestion:
    kind: SuggestionKind
    label: str
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    time: Optional[time] = None
    duration_minutes: Optional[int] = None


@dataclass
class Conflict:
    type: ConflictType
    severity: Severity
    message: str
    suggestions: List[Suggestion] = field(default_factory=list)


@dataclass(frozen=True)
class ProposedSeating:
    """A party and the resource it is about to be seated at"""
    party_size: int
    table_id: Optional[UUID] = None
    join_group_id: Optional[UUID] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration_minutes: Optional[int] = None
    guest_id: Optional[UUID] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def window(self) -> Window:
        return Window.of(self.booking_time, self.duration_minutes)


class ConflictDetector:
    """Inspects one proposed seating and reports conflicts with suggestions"""

    def __init__(
        self,
        calculator: AvailabilityCalculator,
        bookings: BookingRepository,
        clock: Callable[[], datetime] = datetime.now,
        min_duration_minutes: int = settings.walk_in_min_duration_minutes,
        double_booking_window_minutes: int = settings.double_booking_window_minutes,
    ):
        self.calculator = calculator
        self.bookings = bookings
        self.clock = clock
        self.min_duration_minutes = min_duration_minutes
        self.double_booking_window_minutes = double_booking_window_minutes

    def with_defaults(self, seating: ProposedSeating) -> ProposedSeating:
        """Fill date, time and duration from the clock and settings"""
        now = self.clock()
        return replace(
            seating,
            booking_date=seating.booking_date or now.date(),
            booking_time=seating.booking_time or now.time().replace(second=0, microsecond=0),
            duration_minutes=seating.duration_minutes or self.calculator.default_duration_minutes,
        )

    async def detect(self, db: AsyncSession, seating: ProposedSeating) -> List[Conflict]:
        seating = self.with_defaults(seating)
        if seating.party_size is None or seating.party_size < 1:
            raise ValidationError("Party size must be at least 1", party_size=seating.party_size)
        if seating.table_id is None and seating.join_group_id is None:
            raise ValidationError("A table or join group must be chosen")

        schedule = await self.calculator.load_schedule(db, seating.booking_date)
        resource = schedule.find(table_id=seating.table_id, join_group_id=seating.join_group_id)
        if resource is None:
            raise NotFoundError(
                "Resource not found",
                table_id=str(seating.table_id) if seating.table_id else None,
                join_group_id=str(seating.join_group_id) if seating.join_group_id else None,
            )

        order = await self.calculator.priorities.get_priority_order(db, seating.party_size)
        conflicts = []

        capacity = self._capacity_conflict(schedule, order, resource, seating)
        if capacity is not None:
            conflicts.append(capacity)

        occupied = self._occupied_conflict(schedule, order, resource, seating)
        if occupied is not None:
            conflicts.append(occupied)

        double = await self._double_booking_conflict(db, seating)
        if double is not None:
            conflicts.append(double)

        logger.info(
            "Walk-in conflicts detected",
            resource_id=str(resource.id),
            party_size=seating.party_size,
            conflicts=[conflict.type.value for conflict in conflicts],
        )
        return conflicts

    def _alternates(self, schedule: DaySchedule, order, resource: Resource, seating: ProposedSeating) -> List[Suggestion]:
        ranked = self.calculator.rank(
            schedule, order, seating.party_size, seating.window, online_only=False, exclude=(resource.key,),
        )
        suggestions = []
        for candidate in ranked.candidates[:MAX_ALTERNATES]:
            if candidate.is_join_group:
                suggestions.append(Suggestion(
                    kind=SuggestionKind.ALTERNATE_JOIN_GROUP,
                    label=f"Seat at {candidate.label} ({candidate.capacity} seats)",
                    join_group_id=candidate.id,
                ))
            else:
                suggestions.append(Suggestion(
                    kind=SuggestionKind.ALTERNATE_TABLE,
                    label=f"Seat at {candidate.label} ({candidate.capacity} seats)",
                    table_id=candidate.id,
                ))
        return suggestions

    def _capacity_conflict(self, schedule, order, resource: Resource, seating: ProposedSeating) -> Optional[Conflict]:
        if seating.party_size <= resource.capacity:
            return None
        return Conflict(
            type=ConflictType.CAPACITY_EXCEEDED,
            severity=Severity.HIGH,
            message=f"{resource.label} seats {resource.capacity}, party of {seating.party_size}",
            suggestions=self._alternates(schedule, order, resource, seating),
        )

    def _occupied_conflict(self, schedule, order, resource: Resource, seating: ProposedSeating) -> Optional[Conflict]:
        window = seating.window
        occupants = schedule.occupants(resource, window)
        if not occupants:
            return None

        start = window.start
        in_progress = any(occupant.window.contains(start) for occupant in occupants)
        suggestions = []

        if in_progress:
            severity = Severity.HIGH
            message = f"{resource.label} is occupied now"
        else:
            severity = Severity.MEDIUM
            gap = occupants[0].window.start - start
            message = f"{resource.label} is needed again in {gap} minutes"
            if gap >= self.min_duration_minutes:
                suggestions.append(Suggestion(
                    kind=SuggestionKind.SHORTEN_DURATION,
                    label=f"Seat for {gap} minutes",
                    duration_minutes=gap,
                ))

        suggestions.extend(self._alternates(schedule, order, resource, seating))

        wait_until = self.calculator.next_available_time(
            schedule, order, seating.party_size, seating.booking_time, seating.duration_minutes, resource=resource,
        )
        if wait_until is not None:
            suggestions.append(Suggestion(
                kind=SuggestionKind.WAIT,
                label=f"Wait until {format_time(wait_until)}",
                time=wait_until,
            ))

        return Conflict(type=ConflictType.TABLE_OCCUPIED, severity=severity, message=message, suggestions=suggestions)

    async def _double_booking_conflict(self, db: AsyncSession, seating: ProposedSeating) -> Optional[Conflict]:
        existing = await self.bookings.active_guest_bookings(
            db, seating.booking_date, guest_id=seating.guest_id, email=seating.email, phone=seating.phone,
        )
        start = to_minutes(seating.booking_time)
        nearby = [
            booking
            for booking in existing
            if abs(to_minutes(booking.booking_time) - start) <= self.double_booking_window_minutes
        ]
        if not nearby:
            return None

        times = ", ".join(format_time(booking.booking_time) for booking in nearby)
        return Conflict(
            type=ConflictType.DOUBLE_BOOKING,
            severity=Severity.MEDIUM,
            message=f"Guest already has an active booking today at {times}",
            suggestions=[Suggestion(kind=SuggestionKind.ACKNOWLEDGE, label="Seat anyway")],
        )
