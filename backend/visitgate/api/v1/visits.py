"""Visits API router — gate check-in, walk-ins, exits and the visit views."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.api.deps import get_clock, get_db
from visitgate.clock import Clock
from visitgate.config import settings
from visitgate.models.visit import Visit
from visitgate.schemas.common import ErrorResponse
from visitgate.schemas.visit import (
    CheckInRequest,
    ExitRequest,
    VisitDetailResponse,
    VisitListResponse,
    VisitResponse,
    WalkInCreate,
)
from visitgate.services import checkin_service, checkout_service
from visitgate.services.escalation import THRESHOLD_TYPES, run_sweep

router = APIRouter(prefix="/api/v1", tags=["visits"])


@router.post(
    "/visits/check-in",
    response_model=VisitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Check in an invite by code",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def check_in(
    body: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Visit:
    return await checkin_service.check_in_by_code(db, clock, body.code)


@router.post(
    "/visits/walk-in",
    response_model=VisitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a walk-in visitor",
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def register_walk_in(
    body: WalkInCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Visit:
    return await checkin_service.register_walk_in(
        db,
        clock,
        id_number=body.id_number,
        full_name=body.full_name,
        destination=body.destination,
        purpose=body.purpose,
        email=body.email,
        phone=body.phone,
        host_name=body.host_name,
    )


@router.get(
    "/visits",
    response_model=VisitListResponse,
    summary="List visits",
)
async def list_visits(
    scope: str = Query("active", pattern="^(active|checked_out|all)$"),
    status_filter: str | None = Query(None, alias="status", description="Visit status, e.g. ESCALATED_16"),
    q: str | None = Query(None, description="Name, ID number or code"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Security and admin visit views.

    Escalation-status views sweep first (when enabled) so they never show
    stale severities.
    """
    if settings.sweep_on_read and status_filter in THRESHOLD_TYPES:
        await run_sweep(db, clock.now())
    items = await checkin_service.list_visits(db, scope=scope, status=status_filter, search=q, limit=limit)
    return {"items": items, "total": len(items)}


@router.get(
    "/visits/{visit_id}",
    response_model=VisitDetailResponse,
    summary="Get a visit with its event trail",
    responses={404: {"model": ErrorResponse}},
)
async def get_visit(visit_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Visit:
    return await checkin_service.get_visit(db, visit_id)


@router.post(
    "/visits/{visit_id}/exit",
    response_model=VisitResponse,
    summary="Confirm a visitor's exit",
    responses={404: {"model": ErrorResponse}},
)
async def finalize_checkout(
    visit_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Visit:
    """Close the visit. Stops all further overstay notifications."""
    return await checkout_service.finalize_checkout(db, clock, visit_id)


@router.post(
    "/exits",
    response_model=VisitResponse,
    summary="Confirm an exit by code or ID number",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def confirm_exit(
    body: ExitRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Visit:
    visit = await checkout_service.resolve_open_visit(db, code=body.code, id_number=body.id_number)
    return await checkout_service.finalize_checkout(db, clock, visit.id)
