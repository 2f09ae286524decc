"""Invite model — a host's pre-registration of a visitor for one day."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from visitgate.database import Base, UUIDPrimaryKeyMixin


class Invite(UUIDPrimaryKeyMixin, Base):
    """Pre-registered visit, checked in at the gate by its code."""

    __tablename__ = "invites"

    code: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    host_name: Mapped[str] = mapped_column(String(255), nullable=False)
    host_key: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_id_number: Mapped[str] = mapped_column(String(64), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)
    for_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending, checked-in, cancelled

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_invites_host_day", "host_key", "for_date"),
        # Live codes are unique; a cancelled invite gives its code back.
        Index(
            "uq_invites_live_code",
            "code",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        # No second pending invite for the same visitor, host and day.
        Index(
            "uq_invites_pending_visitor",
            "host_key",
            "for_date",
            "visitor_id_number",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Invite(id={self.id}, code={self.code}, host_key={self.host_key}, status={self.status})>"
