"""Visit model — a visitor's presence on campus from check-in to exit."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from visitgate.database import Base, UUIDPrimaryKeyMixin


class Visit(UUIDPrimaryKeyMixin, Base):
    """Open while ``checked_out_at`` is null; clock-running once checkout is requested."""

    __tablename__ = "visits"

    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # invite, walkin
    id_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)  # stored lower-cased
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    host_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invite_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("invites.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    decision: Mapped[str] = mapped_column(String(20), nullable=False, default="approved")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="CHECKED_IN", index=True)

    checkout_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checkout_requested_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    events: Mapped[list["Event"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="visit", lazy="raise", order_by="Event.occurred_at"
    )

    __table_args__ = (
        # Identity guard: one open visit per physical ID (and per e-mail when given).
        Index(
            "uq_visits_open_id_number",
            "id_number",
            unique=True,
            postgresql_where=text("checked_out_at IS NULL"),
            sqlite_where=text("checked_out_at IS NULL"),
        ),
        Index(
            "uq_visits_open_email",
            "email",
            unique=True,
            postgresql_where=text("checked_out_at IS NULL AND email IS NOT NULL"),
            sqlite_where=text("checked_out_at IS NULL AND email IS NOT NULL"),
        ),
        Index("ix_visits_clock_running", "checkout_requested_at", "checked_out_at"),
    )

    @property
    def is_open(self) -> bool:
        return self.checked_out_at is None

    def __repr__(self) -> str:
        return f"<Visit(id={self.id}, code={self.code}, id_number={self.id_number}, status={self.status})>"
