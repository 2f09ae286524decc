"""Event model — append-only audit trail and escalation idempotency ledger."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from visitgate.database import Base, UUIDPrimaryKeyMixin


class Event(UUIDPrimaryKeyMixin, Base):
    """Something that happened to a visit. Each type occurs at most once per visit."""

    __tablename__ = "events"

    visit_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    visit: Mapped["Visit"] = relationship(back_populates="events", lazy="raise")  # type: ignore[name-defined]  # noqa: F821

    # The ledger key: a threshold fires once per visit lifetime, even across racing sweeps.
    __table_args__ = (UniqueConstraint("visit_id", "type", name="uq_events_visit_type"),)

    def __repr__(self) -> str:
        return f"<Event(visit_id={self.visit_id}, type={self.type})>"
