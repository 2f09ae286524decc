"""Status vocabularies shared by models, services and schemas."""

from enum import Enum


class InviteStatus(str, Enum):
    PENDING = "pending"
    CHECKED_IN = "checked-in"
    CANCELLED = "cancelled"


class VisitKind(str, Enum):
    INVITE = "invite"
    WALKIN = "walkin"


class Decision(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VisitStatus(str, Enum):
    """Visit severity marker, listed in forward order."""

    PENDING_ARRIVAL = "PENDING_ARRIVAL"
    CHECKED_IN = "CHECKED_IN"
    HOST_CHECKOUT_STARTED = "HOST_CHECKOUT_STARTED"
    OVERDUE_10 = "OVERDUE_10"
    OVERDUE_13 = "OVERDUE_13"
    OVERDUE_15 = "OVERDUE_15"
    ESCALATED_16 = "ESCALATED_16"
    EXIT_CONFIRMED = "EXIT_CONFIRMED"


STATUS_RANK: dict[str, int] = {status.value: rank for rank, status in enumerate(VisitStatus)}


def statuses_below(target: str) -> list[str]:
    """Statuses that ``target`` counts as forward progress from."""
    rank = STATUS_RANK[target]
    return [status for status, r in STATUS_RANK.items() if r < rank]


class CheckoutStatus(str, Enum):
    REQUESTED = "requested"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class Role(str, Enum):
    SECURITY = "SECURITY"
    ADMIN = "ADMIN"


class NotifyLevel(str, Enum):
    WARN = "warn"
    DANGER = "danger"


class EventType(str, Enum):
    """Audit/ledger event types; each fires at most once per visit."""

    CHECKED_IN = "CHECKED_IN"
    HOST_CHECKOUT_STARTED = "HOST_CHECKOUT_STARTED"
    OVERDUE_10 = "OVERDUE_10"
    OVERDUE_13 = "OVERDUE_13"
    OVERDUE_15 = "OVERDUE_15"
    ESCALATED_16 = "ESCALATED_16"
    EXIT_CONFIRMED = "EXIT_CONFIRMED"
