"""Shared response schemas."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Structured failure returned for every typed domain error."""

    error: str
    reason: str | None = None
    detail: str
