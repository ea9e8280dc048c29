"""
Availability calculator.

Answers "which resources can seat this party for this window" without
writing anything. A DaySchedule is loaded once per date (resources, bookings,
blocks and live slot holds) and every window test after that is done in
memory, which is what lets slot searches step through a whole service period
with a single round trip to the store.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from typing import AsyncIterator, Collection, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from seating.allocation.bookings import BookingRepository
from seating.allocation.catalog import Resource, ResourceCatalog
from seating.allocation.errors import ValidationError
from seating.allocation.priorities import PriorityDirectory, PriorityKey
from seating.allocation.timeslots import (
    MINUTES_PER_DAY, Window, booking_window, from_minutes, iter_times, to_minutes,
)
from seating.config import settings
from seating.models.priority import PriorityEntry
from seating.models.table import JoinGroup

logger = structlog.get_logger()

REASON_NO_SUITABLE_SIZE = "no suitable resource size"
REASON_ALL_BOOKED = "all suitable resources booked"


@dataclass(frozen=True)
class Occupant:
    """Something holding a table for a window: a booking, a block or a slot hold"""
    window: Window
    booking_id: Optional[UUID] = None
    block_id: Optional[UUID] = None
    hold_id: Optional[UUID] = None

    @property
    def is_block(self) -> bool:
        return self.block_id is not None


@dataclass
class DaySchedule:
    """Resources and table occupancy for one date"""
    booking_date: date
    resources: List[Resource]
    occupancy: Dict[UUID, List[Occupant]] = field(default_factory=dict)
    venue_blocks: List[Occupant] = field(default_factory=list)

    def find(self, table_id: Optional[UUID] = None, join_group_id: Optional[UUID] = None) -> Optional[Resource]:
        for resource in self.resources:
            if join_group_id is not None:
                if resource.is_join_group and resource.id == join_group_id:
                    return resource
            elif table_id is not None and not resource.is_join_group and resource.id == table_id:
                return resource
        return None

    def occupants(self, resource: Resource, window: Window) -> List[Occupant]:
        """Occupants overlapping window on any of the resource's tables"""
        found = [occupant for occupant in self.venue_blocks if occupant.window.overlaps(window)]
        for table_id in resource.table_ids:
            for occupant in self.occupancy.get(table_id, []):
                if occupant.window.overlaps(window) and occupant not in found:
                    found.append(occupant)
        return sorted(found, key=lambda occupant: occupant.window.start)

    def is_free(self, resource: Resource, window: Window) -> bool:
        return not self.occupants(resource, window)


@dataclass
class AvailabilityResult:
    available: bool
    candidates: List[Resource] = field(default_factory=list)
    reason: Optional[str] = None


def validate_request(
    booking_date: date,
    booking_time: Optional[time],
    party_size: int,
    duration_minutes: int,
) -> None:
    if not isinstance(booking_date, date):
        raise ValidationError("A valid date is required", booking_date=booking_date)
    if booking_time is not None and not isinstance(booking_time, time):
        raise ValidationError("A valid time is required", booking_time=booking_time)
    if not isinstance(party_size, int) or isinstance(party_size, bool) or party_size < 1:
        raise ValidationError("Party size must be a positive integer", party_size=party_size)
    if not isinstance(duration_minutes, int) or duration_minutes < 1:
        raise ValidationError("Duration must be a positive number of minutes", duration_minutes=duration_minutes)


class AvailabilityCalculator:
    """Ranks candidate resources for a party and window"""

    def __init__(
        self,
        catalog: ResourceCatalog,
        priorities: PriorityDirectory,
        bookings: BookingRepository,
        default_duration_minutes: int = settings.default_duration_minutes,
        slot_step_minutes: int = settings.slot_step_minutes,
    ):
        self.catalog = catalog
        self.priorities = priorities
        self.bookings = bookings
        self.default_duration_minutes = default_duration_minutes
        self.slot_step_minutes = slot_step_minutes

    async def load_schedule(
        self,
        db: AsyncSession,
        booking_date: date,
        exclude_booking_id: Optional[UUID] = None,
    ) -> DaySchedule:
        resources = await self.catalog.list_resources(db)
        members = {resource.id: resource.table_ids for resource in resources if resource.is_join_group}

        occupancy: Dict[UUID, List[Occupant]] = defaultdict(list)
        for booking in await self.bookings.for_date(db, booking_date):
            if booking.id == exclude_booking_id or booking.table_id is None:
                continue
            window = booking_window(
                booking.booking_time, booking.duration_minutes, booking.booking_date, booking.finished_at,
            )
            if window.duration == 0:
                continue

            table_ids = {booking.table_id}
            if booking.join_group_id is not None:
                if booking.join_group_id not in members:
                    group = await db.get(JoinGroup, booking.join_group_id)
                    members[booking.join_group_id] = tuple(group.member_ids) if group else ()
                table_ids.update(members[booking.join_group_id])

            occupant = Occupant(window=window, booking_id=booking.id)
            for table_id in table_ids:
                occupancy[table_id].append(occupant)

        venue_blocks = []
        for block in await self.bookings.blocks_for_date(db, booking_date):
            occupant = Occupant(window=Window.between(block.start_time, block.end_time), block_id=block.id)
            if block.is_venue_wide:
                venue_blocks.append(occupant)
                continue
            for table_id in block.table_ids:
                occupancy[UUID(str(table_id))].append(occupant)

        for hold in await self.bookings.holds_for_date(db, booking_date):
            occupant = Occupant(window=Window.of(hold.start_time, hold.duration_minutes), hold_id=hold.id)
            table_ids = {hold.table_id}
            if hold.join_group_id is not None:
                table_ids.update(members.get(hold.join_group_id, ()))
            for table_id in table_ids:
                occupancy[table_id].append(occupant)

        return DaySchedule(
            booking_date=booking_date,
            resources=resources,
            occupancy=dict(occupancy),
            venue_blocks=venue_blocks,
        )

    def rank(
        self,
        schedule: DaySchedule,
        order: Sequence[PriorityEntry],
        party_size: int,
        window: Window,
        online_only: bool = True,
        exclude: Collection[PriorityKey] = (),
    ) -> AvailabilityResult:
        """Free resources that fit the party, in priority order"""
        suitable = [
            resource
            for resource in schedule.resources
            if resource.fits(party_size)
            and (resource.online_bookable or not online_only)
            and resource.key not in exclude
        ]
        if not suitable:
            return AvailabilityResult(available=False, reason=REASON_NO_SUITABLE_SIZE)

        free = {resource.key: resource for resource in suitable if schedule.is_free(resource, window)}
        if not free:
            return AvailabilityResult(available=False, reason=REASON_ALL_BOOKED)

        ranked = []
        for entry in order:
            resource = free.pop(entry.key, None)
            if resource is not None:
                ranked.append(resource)
        ranked.extend(PriorityDirectory.default_order(free.values()))
        return AvailabilityResult(available=True, candidates=ranked)

    async def check_availability(
        self,
        db: AsyncSession,
        booking_date: date,
        booking_time: time,
        party_size: int,
        duration_minutes: Optional[int] = None,
        online_only: bool = True,
        exclude_booking_id: Optional[UUID] = None,
    ) -> AvailabilityResult:
        duration_minutes = duration_minutes or self.default_duration_minutes
        if booking_time is None:
            raise ValidationError("A valid time is required")
        validate_request(booking_date, booking_time, party_size, duration_minutes)

        schedule = await self.load_schedule(db, booking_date, exclude_booking_id=exclude_booking_id)
        order = await self.priorities.get_priority_order(db, party_size)
        result = self.rank(schedule, order, party_size, Window.of(booking_time, duration_minutes), online_only)

        logger.debug(
            "Availability checked",
            booking_date=booking_date.isoformat(),
            booking_time=booking_time.strftime("%H:%M"),
            party_size=party_size,
            available=result.available,
            candidates=len(result.candidates),
            reason=result.reason,
        )
        return result

    def find_available_slots(
        self,
        db: AsyncSession,
        booking_date: date,
        party_size: int,
        range_start: time,
        range_end: time,
        duration_minutes: Optional[int] = None,
        step_minutes: Optional[int] = None,
        online_only: bool = True,
    ) -> "AvailableSlots":
        duration_minutes = duration_minutes or self.default_duration_minutes
        step_minutes = step_minutes or self.slot_step_minutes
        validate_request(booking_date, range_start, party_size, duration_minutes)
        if not isinstance(range_end, time) or range_end < range_start:
            raise ValidationError("Range end must not be before range start")
        if step_minutes < 1:
            raise ValidationError("Step must be a positive number of minutes", step_minutes=step_minutes)

        return AvailableSlots(
            calculator=self,
            db=db,
            booking_date=booking_date,
            party_size=party_size,
            range_start=range_start,
            range_end=range_end,
            duration_minutes=duration_minutes,
            step_minutes=step_minutes,
            online_only=online_only,
        )

    def next_available_time(
        self,
        schedule: DaySchedule,
        order: Sequence[PriorityEntry],
        party_size: int,
        after: time,
        duration_minutes: int,
        resource: Optional[Resource] = None,
        online_only: bool = False,
        horizon_minutes: int = 240,
    ) -> Optional[time]:
        """Earliest later start at which the resource (or any resource) is free"""
        start = to_minutes(after)
        last = min(start + horizon_minutes, MINUTES_PER_DAY - 1)

        candidates = set(range(start + self.slot_step_minutes, last + 1, self.slot_step_minutes))
        for occupants in list(schedule.occupancy.values()) + [schedule.venue_blocks]:
            candidates.update(
                occupant.window.end
                for occupant in occupants
                if start < occupant.window.end <= last
            )

        for minute in sorted(candidates):
            window = Window(minute, minute + duration_minutes)
            if resource is not None:
                if schedule.is_free(resource, window):
                    return from_minutes(minute)
            elif self.rank(schedule, order, party_size, window, online_only).available:
                return from_minutes(minute)
        return None

    async def suggest_alternative_times(
        self,
        db: AsyncSession,
        booking_date: date,
        booking_time: time,
        party_size: int,
        duration_minutes: Optional[int] = None,
        online_only: bool = True,
        window_minutes: int = settings.alternative_time_window_minutes,
        step_minutes: int = settings.alternative_time_step_minutes,
        limit: int = settings.alternative_time_limit,
    ) -> List[time]:
        """Available start times around the requested one, closest first"""
        duration_minutes = duration_minutes or self.default_duration_minutes
        validate_request(booking_date, booking_time, party_size, duration_minutes)

        schedule = await self.load_schedule(db, booking_date)
        order = await self.priorities.get_priority_order(db, party_size)

        center = to_minutes(booking_time)
        minutes = [
            center + offset
            for offset in range(-window_minutes, window_minutes + 1, step_minutes)
            if offset != 0 and 0 <= center + offset < MINUTES_PER_DAY
        ]
        available = [
            minute
            for minute in minutes
            if self.rank(schedule, order, party_size, Window(minute, minute + duration_minutes), online_only).available
        ]
        available.sort(key=lambda minute: (abs(minute - center), minute))
        return [from_minutes(minute) for minute in available[:limit]]


class AvailableSlots:
    """
    Lazy sequence of start times with at least one free resource.

    Each iteration takes a fresh snapshot of the date, so the object can be
    iterated again to pick up bookings made in between.
    """

    def __init__(
        self,
        calculator: AvailabilityCalculator,
        db: AsyncSession,
        booking_date: date,
        party_size: int,
        range_start: time,
        range_end: time,
        duration_minutes: int,
        step_minutes: int,
        online_only: bool = True,
    ):
        self.calculator = calculator
        self.db = db
        self.booking_date = booking_date
        self.party_size = party_size
        self.range_start = range_start
        self.range_end = range_end
        self.duration_minutes = duration_minutes
        self.step_minutes = step_minutes
        self.online_only = online_only

    def __aiter__(self) -> AsyncIterator[time]:
        return self._generate()

    async def _generate(self) -> AsyncIterator[time]:
        schedule = await self.calculator.load_schedule(self.db, self.booking_date)
        order = await self.calculator.priorities.get_priority_order(self.db, self.party_size)

        for slot in iter_times(self.range_start, self.range_end, self.step_minutes):
            window = Window.of(slot, self.duration_minutes)
            if self.calculator.rank(schedule, order, self.party_size, window, self.online_only).available:
                yield slot

    async def to_list(self) -> List[time]:
        return [slot async for slot in self]
