"""Checkout requests API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.api.deps import get_clock, get_db
from visitgate.clock import Clock
from visitgate.models.checkout_request import CheckoutRequest
from visitgate.schemas.checkout import CheckoutRequestListResponse, CheckoutRequestResponse, CheckoutStart
from visitgate.schemas.common import ErrorResponse
from visitgate.services import checkout_service

router = APIRouter(prefix="/api/v1/checkouts", tags=["checkouts"])


@router.post(
    "",
    response_model=CheckoutRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a visitor's checkout clock",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_checkout(
    body: CheckoutStart,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> CheckoutRequest:
    """Security sees the request immediately; overstay alerts start at +10 minutes."""
    return await checkout_service.start_checkout(db, clock, body.host_name, body.code)


@router.get(
    "",
    response_model=CheckoutRequestListResponse,
    summary="List checkout requests",
)
async def list_checkout_requests(
    status_filter: str | None = Query("requested", alias="status", pattern="^(requested|finalized|cancelled)$"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items = await checkout_service.list_checkout_requests(db, status=status_filter, limit=limit)
    return {"items": items, "total": len(items)}
