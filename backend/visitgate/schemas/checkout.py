"""Pydantic v2 request/response schemas for checkout requests."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CheckoutStart(BaseModel):
    """Host starting the exit countdown for a visitor's code."""

    host_name: str = Field(..., max_length=255)
    code: str = Field(..., max_length=32)


class CheckoutRequestResponse(BaseModel):
    id: uuid.UUID
    visit_id: uuid.UUID
    host_name: str
    status: str
    requested_at: datetime
    finalized_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutRequestListResponse(BaseModel):
    items: list[CheckoutRequestResponse]
    total: int
