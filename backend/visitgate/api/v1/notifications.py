"""Notifications and sweep API router — role dashboards and on-demand sweeps."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.api.deps import get_clock, get_db
from visitgate.clock import Clock
from visitgate.config import settings
from visitgate.models.notification import Notification
from visitgate.schemas.common import ErrorResponse
from visitgate.schemas.notification import NotificationListResponse, NotificationResponse, SweepResponse
from visitgate.services import notification_service
from visitgate.services.escalation import SweepReport, run_sweep

router = APIRouter(prefix="/api/v1", tags=["notifications"])


@router.post(
    "/sweeps",
    response_model=SweepResponse,
    summary="Run the escalation sweep now",
)
async def trigger_sweep(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SweepReport:
    """Evaluate every open visit against the overstay thresholds.

    Safe to call at any time, alongside the scheduled sweep.
    """
    return await run_sweep(db, clock.now())


@router.get(
    "/notifications",
    response_model=NotificationListResponse,
    summary="List notifications for a role",
    responses={422: {"model": ErrorResponse}},
)
async def list_notifications(
    role: str = Query(..., description="SECURITY or ADMIN"),
    unread_only: bool = Query(True),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> dict:
    if settings.sweep_on_read:
        await run_sweep(db, clock.now())
    items = await notification_service.list_notifications(db, role, unread_only=unread_only, limit=limit)
    return {"items": items, "total": len(items)}


@router.post(
    "/notifications/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification read",
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Notification:
    return await notification_service.mark_notification_read(db, clock, notification_id)
