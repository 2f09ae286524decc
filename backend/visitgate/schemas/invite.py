"""Pydantic v2 request/response schemas for invite endpoints."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class InviteCreate(BaseModel):
    """Schema for a host pre-registering a visitor for today.

    Length rules are enforced by the service so every rejection carries the
    same error body.
    """

    host_name: str = Field(..., max_length=255)
    visitor_name: str = Field(..., max_length=255)
    visitor_id_number: str = Field(..., max_length=64)
    purpose: str
    destination: str | None = Field(None, max_length=255)


class InviteCancel(BaseModel):
    """Host confirming a cancellation of their own invite."""

    host_name: str = Field(..., max_length=255)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class InviteResponse(BaseModel):
    id: uuid.UUID
    code: str
    host_name: str
    host_key: str
    visitor_name: str
    visitor_id_number: str
    purpose: str
    destination: str | None = None
    for_date: date
    status: str
    created_at: datetime
    checked_in_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class InviteListResponse(BaseModel):
    items: list[InviteResponse]
    total: int
