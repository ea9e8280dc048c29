"""
Walk-in seating flow.

WalkInFlow is a plain state machine driven by an explicit transition table;
it holds the operator's choices and never touches the store. The
WalkInOrchestrator runs the step functions around it. Reads happen while
searching for conflicts, and the only write is the commit in
confirm_validation(), so a flow abandoned at any earlier step leaves nothing
behind.
"""

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from seating.allocation.allocator import AllocationResult, Allocator
from seating.allocation.bookings import BookingRepository
from seating.allocation.conflicts import (
    Conflict, ConflictDetector, ProposedSeating, Suggestion, SuggestionKind,
)
from seating.allocation.errors import (
    AllocationError, ConcurrencyConflictError, InvalidTransitionError, NotFoundError, ValidationError,
)
from seating.config import settings
from seating.models.booking import BookingSource, BookingStatus
from seating.models.guest import Guest

logger = structlog.get_logger()


class WalkInStep(str, enum.Enum):
    GUEST_SEARCH = "guest_search"
    CONFLICT_RESOLUTION = "conflict_resolution"
    VALIDATION = "validation"
    CONFIRMED = "confirmed"


class WalkInEvent(str, enum.Enum):
    SUBMIT_GUEST = "submit_guest"
    RESOLVE = "resolve"
    CONFIRM = "confirm"
    BACK = "back"
    RESET = "reset"


class ResolutionMode(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"
    FORCE = "force"


# (step, event) -> steps the event may lead to; RESET is allowed from every step
TRANSITIONS: Dict[Tuple[WalkInStep, WalkInEvent], FrozenSet[WalkInStep]] = {
    (WalkInStep.GUEST_SEARCH, WalkInEvent.SUBMIT_GUEST): frozenset(
        {WalkInStep.CONFLICT_RESOLUTION, WalkInStep.VALIDATION}
    ),
    (WalkInStep.CONFLICT_RESOLUTION, WalkInEvent.RESOLVE): frozenset({WalkInStep.VALIDATION}),
    (WalkInStep.CONFLICT_RESOLUTION, WalkInEvent.BACK): frozenset({WalkInStep.GUEST_SEARCH}),
    (WalkInStep.VALIDATION, WalkInEvent.CONFIRM): frozenset({WalkInStep.CONFIRMED}),
    (WalkInStep.VALIDATION, WalkInEvent.BACK): frozenset(
        {WalkInStep.GUEST_SEARCH, WalkInStep.CONFLICT_RESOLUTION}
    ),
}
for _step in WalkInStep:
    TRANSITIONS[(_step, WalkInEvent.RESET)] = frozenset({WalkInStep.GUEST_SEARCH})


@dataclass(frozen=True)
class GuestDetails:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    guest_id: Optional[UUID] = None


@dataclass
class WalkInFlow:
    """State of one walk-in being seated"""
    id: UUID = field(default_factory=uuid.uuid4)
    step: WalkInStep = WalkInStep.GUEST_SEARCH
    history: List[WalkInStep] = field(default_factory=list)
    guest: Optional[GuestDetails] = None
    seating: Optional[ProposedSeating] = None
    conflicts: List[Conflict] = field(default_factory=list)
    resolution: Optional[ResolutionMode] = None
    forced: bool = False
    error: Optional[str] = None
    booking_id: Optional[UUID] = None
    guest_id: Optional[UUID] = None
    allocation: Optional[AllocationResult] = None
    moved: bool = False
    unseated: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    touched_at: datetime = field(default_factory=datetime.utcnow)

    def can(self, event: WalkInEvent, target: Optional[WalkInStep] = None) -> bool:
        allowed = TRANSITIONS.get((self.step, event), frozenset())
        return bool(allowed) if target is None else target in allowed

    def fire(self, event: WalkInEvent, target: WalkInStep) -> None:
        if not self.can(event, target):
            raise InvalidTransitionError(
                f"Cannot {event.value} from {self.step.value} to {target.value}",
                flow_id=str(self.id),
            )
        if event == WalkInEvent.RESET:
            self.history = []
        elif event == WalkInEvent.BACK:
            while self.history and self.history[-1] != target:
                self.history.pop()
            if self.history:
                self.history.pop()
        else:
            self.history.append(self.step)
        self.step = target


def apply_suggestion(seating: ProposedSeating, suggestion: Suggestion) -> ProposedSeating:
    """Seating with one conflict suggestion applied"""
    if suggestion.kind == SuggestionKind.ALTERNATE_TABLE:
        return replace(seating, table_id=suggestion.table_id, join_group_id=None)
    if suggestion.kind == SuggestionKind.ALTERNATE_JOIN_GROUP:
        return replace(seating, table_id=None, join_group_id=suggestion.join_group_id)
    if suggestion.kind == SuggestionKind.SHORTEN_DURATION:
        return replace(seating, duration_minutes=suggestion.duration_minutes)
    if suggestion.kind == SuggestionKind.WAIT:
        return replace(seating, booking_time=suggestion.time)
    return seating


class WalkInFlowStore:
    """
    In-process registry of open walk-in flows.

    A flow untouched for ttl_minutes is evicted on the next create or get, so
    flows abandoned without an abort do not pile up.
    """

    def __init__(
        self,
        ttl_minutes: int = settings.walk_in_flow_ttl_minutes,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock
        self._flows: Dict[UUID, WalkInFlow] = {}

    def create(self) -> WalkInFlow:
        self.evict_expired()
        now = self.clock()
        flow = WalkInFlow(created_at=now, touched_at=now)
        self._flows[flow.id] = flow
        return flow

    def get(self, flow_id: UUID) -> WalkInFlow:
        self.evict_expired()
        flow = self._flows.get(flow_id)
        if flow is None:
            raise NotFoundError("Walk-in flow not found", flow_id=str(flow_id))
        flow.touched_at = self.clock()
        return flow

    def discard(self, flow_id: UUID) -> None:
        self._flows.pop(flow_id, None)

    def evict_expired(self) -> int:
        cutoff = self.clock() - self.ttl
        stale = [flow_id for flow_id, flow in self._flows.items() if flow.touched_at < cutoff]
        for flow_id in stale:
            del self._flows[flow_id]
        if stale:
            logger.info("Evicted idle walk-in flows", count=len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._flows)


class WalkInOrchestrator:
    """Runs the walk-in steps: search, resolve, validate and commit"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        detector: ConflictDetector,
        allocator: Allocator,
        bookings: BookingRepository,
        actor: str = "host",
    ):
        self.session_factory = session_factory
        self.detector = detector
        self.allocator = allocator
        self.bookings = bookings
        self.actor = actor

    async def submit_guest_search(
        self,
        flow: WalkInFlow,
        guest: GuestDetails,
        seating: ProposedSeating,
    ) -> WalkInFlow:
        """Record guest and tentative resource, then check for conflicts"""
        if not flow.can(WalkInEvent.SUBMIT_GUEST):
            raise InvalidTransitionError(
                f"Cannot submit a guest from {flow.step.value}", flow_id=str(flow.id),
            )

        seating = self.detector.with_defaults(replace(
            seating,
            guest_id=guest.guest_id,
            email=guest.email,
            phone=guest.phone,
        ))
        if seating.duration_minutes < self.detector.min_duration_minutes:
            raise ValidationError(
                f"Duration must be at least {self.detector.min_duration_minutes} minutes",
                duration_minutes=seating.duration_minutes,
            )

        async with self.session_factory() as db:
            conflicts = await self.detector.detect(db, seating)

        flow.guest = guest
        flow.seating = seating
        flow.conflicts = conflicts
        flow.forced = False
        flow.resolution = None
        flow.error = None
        flow.fire(
            WalkInEvent.SUBMIT_GUEST,
            WalkInStep.CONFLICT_RESOLUTION if conflicts else WalkInStep.VALIDATION,
        )

        logger.info(
            "Walk-in guest submitted",
            flow_id=str(flow.id),
            step=flow.step.value,
            conflicts=len(conflicts),
        )
        return flow

    async def resolve_conflict(
        self,
        flow: WalkInFlow,
        mode: ResolutionMode,
        choice: Optional[Suggestion] = None,
    ) -> WalkInFlow:
        if not flow.can(WalkInEvent.RESOLVE):
            raise InvalidTransitionError(
                f"Cannot resolve conflicts from {flow.step.value}", flow_id=str(flow.id),
            )

        seating = flow.seating
        if mode == ResolutionMode.AUTO:
            for conflict in sorted(flow.conflicts, key=lambda conflict: conflict.severity.rank):
                if not conflict.suggestions:
                    raise ValidationError(
                        f"No suggestion resolves {conflict.type.value}; choose force or go back",
                        flow_id=str(flow.id),
                    )
                seating = apply_suggestion(seating, conflict.suggestions[0])
        elif mode == ResolutionMode.MANUAL:
            offered = [suggestion for conflict in flow.conflicts for suggestion in conflict.suggestions]
            if choice is None or choice not in offered:
                raise ValidationError("Choose one of the offered suggestions", flow_id=str(flow.id))
            seating = apply_suggestion(seating, choice)
        else:
            flow.forced = True

        flow.seating = seating
        flow.resolution = mode
        flow.fire(WalkInEvent.RESOLVE, WalkInStep.VALIDATION)

        logger.info("Walk-in conflicts resolved", flow_id=str(flow.id), mode=mode.value)
        return flow

    async def confirm_validation(self, flow: WalkInFlow) -> WalkInFlow:
        """
        Commit the walk-in: upsert the guest, insert the booking and allocate
        it in one transaction.

        Errors are recorded on flow.error and the flow stays at validation so
        the operator can retry or go back.
        """
        if not flow.can(WalkInEvent.CONFIRM, WalkInStep.CONFIRMED):
            raise InvalidTransitionError(
                f"Cannot confirm from {flow.step.value}", flow_id=str(flow.id),
            )

        attempts = 0
        while True:
            attempts += 1
            async with self.session_factory() as db:
                try:
                    guest = await self._upsert_guest(db, flow.guest)
                    seating = flow.seating
                    booking = await self.bookings.create_booking(
                        db,
                        party_size=seating.party_size,
                        booking_date=seating.booking_date,
                        booking_time=seating.booking_time,
                        duration_minutes=seating.duration_minutes,
                        guest_id=guest.id if guest else None,
                        guest_name=guest.name if guest else None,
                        status=BookingStatus.SEATED,
                        source=BookingSource.WALK_IN,
                    )
                    result = await self.allocator.assign(
                        db,
                        booking,
                        preferred_table_id=seating.table_id,
                        preferred_join_group_id=seating.join_group_id,
                        ignore_capacity=flow.forced,
                        online_only=False,
                        actor=self.actor,
                        reason="walk_in_forced" if flow.forced else "walk_in",
                    )
                    await db.commit()
                except ConcurrencyConflictError as exc:
                    await db.rollback()
                    if attempts > self.allocator.retry_limit:
                        flow.error = exc.message
                        logger.warning("Walk-in commit lost its retries", flow_id=str(flow.id), attempts=attempts)
                        return flow
                    continue
                except (AllocationError, SQLAlchemyError) as exc:
                    await db.rollback()
                    flow.error = exc.message if isinstance(exc, AllocationError) else "Could not save the walk-in"
                    logger.error("Walk-in commit failed", flow_id=str(flow.id), error=str(exc))
                    return flow

            flow.guest_id = guest.id if guest else None
            flow.booking_id = booking.id
            result.attempts = attempts
            flow.allocation = result
            flow.unseated = not result.success
            flow.moved = result.success and (
                (seating.table_id is not None and result.table_id != seating.table_id)
                or (seating.join_group_id is not None and result.join_group_id != seating.join_group_id)
            )
            flow.error = None
            flow.fire(WalkInEvent.CONFIRM, WalkInStep.CONFIRMED)

            if flow.moved or flow.unseated:
                logger.warning(
                    "Walk-in not seated where chosen",
                    flow_id=str(flow.id),
                    booking_id=str(booking.id),
                    chosen_table_id=str(seating.table_id) if seating.table_id else None,
                    chosen_join_group_id=str(seating.join_group_id) if seating.join_group_id else None,
                    table_id=str(result.table_id) if result.table_id else None,
                    reason=result.reason,
                )
            logger.info(
                "Walk-in confirmed",
                flow_id=str(flow.id),
                booking_id=str(booking.id),
                table_id=str(result.table_id) if result.table_id else None,
                forced=flow.forced,
            )
            return flow

    def back(self, flow: WalkInFlow, to: Optional[WalkInStep] = None) -> WalkInFlow:
        """Return to an earlier step; defaults to the previous one"""
        if to is None:
            if not flow.history:
                raise InvalidTransitionError(f"Cannot go back from {flow.step.value}", flow_id=str(flow.id))
            to = flow.history[-1]
        flow.fire(WalkInEvent.BACK, to)
        flow.error = None
        if to == WalkInStep.GUEST_SEARCH:
            flow.conflicts = []
            flow.forced = False
            flow.resolution = None
        return flow

    def reset(self, flow: WalkInFlow) -> WalkInFlow:
        flow.fire(WalkInEvent.RESET, WalkInStep.GUEST_SEARCH)
        flow.guest = None
        flow.seating = None
        flow.conflicts = []
        flow.resolution = None
        flow.forced = False
        flow.error = None
        flow.booking_id = None
        flow.guest_id = None
        flow.allocation = None
        flow.moved = False
        flow.unseated = False
        return flow

    async def _upsert_guest(self, db: AsyncSession, details: Optional[GuestDetails]) -> Optional[Guest]:
        """Find the guest by id, email then phone; create one when a name is known"""
        if details is None:
            return None

        guest = None
        if details.guest_id is not None:
            guest = await db.get(Guest, details.guest_id)
            if guest is None:
                raise NotFoundError("Guest not found", guest_id=str(details.guest_id))
        if guest is None and details.email:
            result = await db.execute(select(Guest).where(Guest.email == details.email).limit(1))
            guest = result.scalar_one_or_none()
        if guest is None and details.phone:
            result = await db.execute(select(Guest).where(Guest.phone == details.phone).limit(1))
            guest = result.scalar_one_or_none()

        if guest is None:
            if not details.name:
                return None
            guest = Guest(name=details.name, email=details.email, phone=details.phone, visit_count=0)
            db.add(guest)
        else:
            guest.name = details.name or guest.name
            guest.email = guest.email or details.email
            guest.phone = guest.phone or details.phone

        guest.visit_count = (guest.visit_count or 0) + 1
        await db.flush()
        return guest
