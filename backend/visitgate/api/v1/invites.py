"""Invites API router — hosts pre-register and cancel visitor invites."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.api.deps import get_clock, get_db
from visitgate.clock import Clock
from visitgate.models.invite import Invite
from visitgate.schemas.common import ErrorResponse
from visitgate.schemas.invite import InviteCancel, InviteCreate, InviteListResponse, InviteResponse
from visitgate.services import invite_service

router = APIRouter(prefix="/api/v1/invites", tags=["invites"])


@router.post(
    "",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an invite for today",
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def create_invite(
    body: InviteCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Invite:
    """Pre-register a visitor. The returned code is what the visitor shows at the gate."""
    return await invite_service.create_invite(
        db,
        clock,
        host_name=body.host_name,
        visitor_name=body.visitor_name,
        visitor_id_number=body.visitor_id_number,
        purpose=body.purpose,
        destination=body.destination,
    )


@router.get(
    "",
    response_model=InviteListResponse,
    summary="List invites",
)
async def list_invites(
    host: str | None = Query(None, description="Host name; matched on its normalized key"),
    for_date: date | None = Query(None, description="Calendar day (defaults to all days)"),
    status_filter: str | None = Query(None, alias="status", description="pending, checked-in or cancelled"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Return invites newest first."""
    items = await invite_service.list_invites(db, host_name=host, for_date=for_date, status=status_filter, limit=limit)
    return {"items": items, "total": len(items)}


@router.post(
    "/{invite_id}/cancel",
    response_model=InviteResponse,
    summary="Cancel a pending invite",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_invite(
    invite_id: uuid.UUID,
    body: InviteCancel,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Invite:
    """Cancel an invite that has not been checked in yet."""
    return await invite_service.cancel_invite(db, clock, invite_id, body.host_name)
