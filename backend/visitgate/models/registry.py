"""Registry tables used as storage-level guards.

``CodeClaim`` makes code assignment an atomic check-and-insert across
invites and visits. ``InviteQuota`` is the per-host daily counter that is
bumped with a conditional UPDATE.
"""

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from visitgate.database import Base


class CodeClaim(Base):
    """A code currently in use by a live invite or a visit."""

    __tablename__ = "code_claims"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    owner_kind: Mapped[str] = mapped_column(String(20), nullable=False)  # invite, walkin
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<CodeClaim(code={self.code}, owner_kind={self.owner_kind})>"


class InviteQuota(Base):
    """Number of non-cancelled invites a host holds for one day."""

    __tablename__ = "invite_quotas"

    host_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    for_date: Mapped[date] = mapped_column(Date, primary_key=True)
    active_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (CheckConstraint("active_count >= 0", name="ck_invite_quotas_non_negative"),)

    def __repr__(self) -> str:
        return f"<InviteQuota(host_key={self.host_key}, for_date={self.for_date}, active_count={self.active_count})>"
