"""Pydantic v2 request/response schemas for check-in, walk-in and exit endpoints."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CheckInRequest(BaseModel):
    code: str = Field(..., max_length=32)


class WalkInCreate(BaseModel):
    """Security registering a visitor who arrived without an invite."""

    id_number: str = Field(..., max_length=64)
    full_name: str = Field(..., max_length=255)
    destination: str = Field(..., max_length=255)
    purpose: str | None = None
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    host_name: str | None = Field(None, max_length=255)


class ExitRequest(BaseModel):
    """Gate exit by visitor code, or by ID number when the code is lost."""

    code: str | None = Field(None, max_length=32)
    id_number: str | None = Field(None, max_length=64)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class EventResponse(BaseModel):
    type: str
    note: str | None = None
    meta: dict[str, Any]
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VisitResponse(BaseModel):
    id: uuid.UUID
    code: str
    kind: str
    id_number: str
    full_name: str
    email: str | None = None
    phone: str | None = None
    destination: str | None = None
    purpose: str | None = None
    host_name: str | None = None
    invite_id: uuid.UUID | None = None
    decision: str
    status: str
    checkout_requested_at: datetime | None = None
    checkout_requested_by: str | None = None
    created_at: datetime
    checked_out_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class VisitDetailResponse(VisitResponse):
    """Single visit with its audit trail, oldest event first."""

    events: list[EventResponse] = []


class VisitListResponse(BaseModel):
    items: list[VisitResponse]
    total: int
