"""Pydantic v2 schemas for role-scoped notifications and sweep reports."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    id: uuid.UUID
    role: str
    title: str
    body: str
    level: str
    visit_code: str
    visit_id: uuid.UUID | None = None
    created_at: datetime
    read_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int


class FiredThresholdResponse(BaseModel):
    visit_id: uuid.UUID
    visit_code: str
    event_type: str
    role: str
    elapsed_min: float

    model_config = ConfigDict(from_attributes=True)


class SweepResponse(BaseModel):
    """Outcome of one escalation sweep."""

    swept_at: datetime
    visits_scanned: int
    fired: list[FiredThresholdResponse]
    failed_visit_ids: list[uuid.UUID]

    model_config = ConfigDict(from_attributes=True)
