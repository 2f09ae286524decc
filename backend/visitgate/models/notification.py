"""Notification model — role-scoped alerts raised by threshold crossings."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visitgate.database import Base, UUIDPrimaryKeyMixin


class Notification(UUIDPrimaryKeyMixin, Base):
    """An alert addressed to a role (SECURITY or ADMIN), read from its dashboard."""

    __tablename__ = "notifications"

    role: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    level: Mapped[str] = mapped_column(String(10), nullable=False)  # warn, danger
    visit_code: Mapped[str] = mapped_column(String(16), nullable=False)
    visit_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_notifications_role_read", "role", "read_at"),)

    def __repr__(self) -> str:
        return f"<Notification(role={self.role}, level={self.level}, visit_code={self.visit_code})>"
