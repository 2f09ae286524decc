"""Typed failure kinds raised by the visit lifecycle services.

Services raise these; the HTTP layer turns them into a structured
``{"error", "reason", "detail"}`` body (see ``visitgate.main``).
"""

from enum import Enum


class ConflictReason(str, Enum):
    """Sub-reason carried by :class:`ConflictError`."""

    DUPLICATE_PENDING = "DuplicatePending"
    DUPLICATE_ACTIVE_IDENTITY = "DuplicateActiveIdentity"
    ALREADY_CHECKED_IN = "AlreadyCheckedIn"
    ALREADY_CANCELLED = "AlreadyCancelled"
    ALREADY_REQUESTED = "AlreadyRequested"
    WRONG_DAY = "WrongDay"
    INVALID_STATE = "InvalidState"


class VisitGateError(Exception):
    """Base class for all domain errors."""

    kind = "error"
    status_code = 400

    def __init__(self, detail: str, reason: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.kind, "reason": self.reason, "detail": self.detail}


class ValidationError(VisitGateError):
    """Malformed or missing input."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(VisitGateError):
    """No matching invite, visit, visitor or notification."""

    kind = "not_found"
    status_code = 404


class ConflictError(VisitGateError):
    """The request contradicts current state; ``reason`` says how."""

    kind = "conflict"
    status_code = 409

    def __init__(self, reason: ConflictReason, detail: str) -> None:
        super().__init__(detail, reason=reason.value)
        self.conflict_reason = reason


class QuotaExceededError(VisitGateError):
    """Per-host daily invite quota reached."""

    kind = "quota_exceeded"
    status_code = 429


class KeyspaceExhaustedError(VisitGateError):
    """No free code could be found within the attempt budget."""

    kind = "keyspace_exhausted"
    status_code = 503


class PersistenceError(VisitGateError):
    """Storage I/O failure. Safe for the caller to retry the whole operation."""

    kind = "persistence_error"
    status_code = 503
