"""CheckoutRequest model — a host starting a visitor's exit countdown."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from visitgate.database import Base, UUIDPrimaryKeyMixin


class CheckoutRequest(UUIDPrimaryKeyMixin, Base):
    """Exit countdown request. At most one ``requested`` row per visit."""

    __tablename__ = "checkout_requests"

    visit_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    host_name: Mapped[str] = mapped_column(String(255), nullable=False)
    host_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="requested")  # requested, finalized, cancelled
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_checkout_requests_active_visit",
            "visit_id",
            unique=True,
            postgresql_where=text("status = 'requested'"),
            sqlite_where=text("status = 'requested'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<CheckoutRequest(visit_id={self.visit_id}, status={self.status})>"
