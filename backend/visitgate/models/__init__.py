"""SQLAlchemy models for VisitGate.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from visitgate.models.checkout_request import CheckoutRequest
from visitgate.models.event import Event
from visitgate.models.invite import Invite
from visitgate.models.notification import Notification
from visitgate.models.registry import CodeClaim, InviteQuota
from visitgate.models.visit import Visit

__all__ = [
    "CheckoutRequest",
    "CodeClaim",
    "Event",
    "Invite",
    "InviteQuota",
    "Notification",
    "Visit",
]
