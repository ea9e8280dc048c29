"""Walk-in seating API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from seating.allocation.conflicts import ConflictDetector, ProposedSeating
from seating.allocation.walkin import (
    GuestDetails, ResolutionMode, WalkInFlowStore, WalkInOrchestrator, WalkInStep,
)
from seating.api.deps import get_detector, get_flow_store, get_orchestrator
from seating.database import get_db
from seating.schemas.walkin import (
    BackRequest,
    ConflictResponse,
    DetectRequest,
    GuestIn,
    ResolveRequest,
    SeatingIn,
    WalkInResponse,
    WalkInStart,
    conflicts_response,
)

router = APIRouter()


def _seating(seating: SeatingIn, guest: GuestIn) -> ProposedSeating:
    return ProposedSeating(
        party_size=seating.party_size,
        table_id=seating.table_id,
        join_group_id=seating.join_group_id,
        booking_date=seating.booking_date,
        booking_time=seating.booking_time,
        duration_minutes=seating.duration_minutes,
        guest_id=guest.guest_id,
        email=guest.email,
        phone=guest.phone,
    )


def _guest(guest: GuestIn) -> GuestDetails:
    return GuestDetails(name=guest.name, email=guest.email, phone=guest.phone, guest_id=guest.guest_id)


@router.post("/detect", response_model=List[ConflictResponse])
async def detect_conflicts(
    request: DetectRequest,
    detector: ConflictDetector = Depends(get_detector),
    db: AsyncSession = Depends(get_db),
):
    """Conflicts for seating a party at a table right now"""
    conflicts = await detector.detect(db, _seating(request.seating, request.guest))
    return conflicts_response(conflicts)


@router.post("", response_model=WalkInResponse, status_code=201)
async def start_walk_in(
    request: WalkInStart,
    store: WalkInFlowStore = Depends(get_flow_store),
    orchestrator: WalkInOrchestrator = Depends(get_orchestrator),
):
    """Open a walk-in flow and run the guest search step"""
    flow = store.create()
    try:
        await orchestrator.submit_guest_search(
            flow, _guest(request.guest), _seating(request.seating, request.guest),
        )
    except Exception:
        store.discard(flow.id)
        raise
    return WalkInResponse.from_flow(flow)


@router.get("/{flow_id}", response_model=WalkInResponse)
async def get_walk_in(
    flow_id: UUID,
    store: WalkInFlowStore = Depends(get_flow_store),
):
    return WalkInResponse.from_flow(store.get(flow_id))


@router.post("/{flow_id}/resolve", response_model=WalkInResponse)
async def resolve_walk_in(
    flow_id: UUID,
    request: ResolveRequest,
    store: WalkInFlowStore = Depends(get_flow_store),
    orchestrator: WalkInOrchestrator = Depends(get_orchestrator),
):
    """Resolve conflicts automatically, with one chosen suggestion, or by force"""
    flow = store.get(flow_id)

    choice = None
    if request.mode == ResolutionMode.MANUAL:
        try:
            choice = flow.conflicts[request.conflict_index].suggestions[request.suggestion_index]
        except (IndexError, TypeError):
            raise HTTPException(status_code=422, detail="Unknown conflict or suggestion")

    await orchestrator.resolve_conflict(flow, request.mode, choice)
    return WalkInResponse.from_flow(flow)


@router.post("/{flow_id}/confirm", response_model=WalkInResponse)
async def confirm_walk_in(
    flow_id: UUID,
    store: WalkInFlowStore = Depends(get_flow_store),
    orchestrator: WalkInOrchestrator = Depends(get_orchestrator),
):
    """
    Commit the walk-in; on failure the flow stays at validation with an error.

    A confirmed flow is done and leaves the store. moved and unseated in the
    response tell the host when the party did not get the chosen table.
    """
    flow = store.get(flow_id)
    await orchestrator.confirm_validation(flow)
    if flow.step == WalkInStep.CONFIRMED:
        store.discard(flow.id)
    return WalkInResponse.from_flow(flow)


@router.post("/{flow_id}/back", response_model=WalkInResponse)
async def back_walk_in(
    flow_id: UUID,
    request: Optional[BackRequest] = Body(None),
    store: WalkInFlowStore = Depends(get_flow_store),
    orchestrator: WalkInOrchestrator = Depends(get_orchestrator),
):
    flow = store.get(flow_id)
    orchestrator.back(flow, request.to if request else None)
    return WalkInResponse.from_flow(flow)


@router.delete("/{flow_id}", status_code=204)
async def abort_walk_in(
    flow_id: UUID,
    store: WalkInFlowStore = Depends(get_flow_store),
    orchestrator: WalkInOrchestrator = Depends(get_orchestrator),
):
    """Abandon a flow; nothing was written before confirmation"""
    orchestrator.reset(store.get(flow_id))
    store.discard(flow_id)
