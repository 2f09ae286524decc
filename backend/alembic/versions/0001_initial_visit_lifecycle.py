"""initial_visit_lifecycle

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Step 1: Registry tables (code claims, per-host daily quota)
    op.create_table(
        "code_claims",
        sa.Column("code", sa.String(16), primary_key=True),
        sa.Column("owner_kind", sa.String(20), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "invite_quotas",
        sa.Column("host_key", sa.String(255), primary_key=True),
        sa.Column("for_date", sa.Date(), primary_key=True),
        sa.Column("active_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("active_count >= 0", name="ck_invite_quotas_non_negative"),
    )

    # Step 2: Invites
    op.create_table(
        "invites",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("host_name", sa.String(255), nullable=False),
        sa.Column("host_key", sa.String(255), nullable=False),
        sa.Column("visitor_name", sa.String(255), nullable=False),
        sa.Column("visitor_id_number", sa.String(64), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("destination", sa.String(255), nullable=True),
        sa.Column("for_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_invites_code", "invites", ["code"])
    op.create_index("ix_invites_host_day", "invites", ["host_key", "for_date"])
    op.create_index(
        "uq_invites_live_code",
        "invites",
        ["code"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index(
        "uq_invites_pending_visitor",
        "invites",
        ["host_key", "for_date", "visitor_id_number"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # Step 3: Visits with the open-identity guard
    op.create_table(
        "visits",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(16), nullable=False, unique=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("id_number", sa.String(64), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("destination", sa.String(255), nullable=True),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("host_name", sa.String(255), nullable=True),
        sa.Column(
            "invite_id",
            sa.Uuid(),
            sa.ForeignKey("invites.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("decision", sa.String(20), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("checkout_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checkout_requested_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_visits_id_number", "visits", ["id_number"])
    op.create_index("ix_visits_status", "visits", ["status"])
    op.create_index("ix_visits_clock_running", "visits", ["checkout_requested_at", "checked_out_at"])
    op.create_index(
        "uq_visits_open_id_number",
        "visits",
        ["id_number"],
        unique=True,
        postgresql_where=sa.text("checked_out_at IS NULL"),
        sqlite_where=sa.text("checked_out_at IS NULL"),
    )
    op.create_index(
        "uq_visits_open_email",
        "visits",
        ["email"],
        unique=True,
        postgresql_where=sa.text("checked_out_at IS NULL AND email IS NOT NULL"),
        sqlite_where=sa.text("checked_out_at IS NULL AND email IS NOT NULL"),
    )

    # Step 4: Checkout requests, events ledger, notifications
    op.create_table(
        "checkout_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("visit_id", sa.Uuid(), sa.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("host_name", sa.String(255), nullable=False),
        sa.Column("host_key", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_checkout_requests_visit_id", "checkout_requests", ["visit_id"])
    op.create_index(
        "uq_checkout_requests_active_visit",
        "checkout_requests",
        ["visit_id"],
        unique=True,
        postgresql_where=sa.text("status = 'requested'"),
        sqlite_where=sa.text("status = 'requested'"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("visit_id", sa.Uuid(), sa.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("visit_id", "type", name="uq_events_visit_type"),
    )
    op.create_index("ix_events_visit_id", "events", ["visit_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("level", sa.String(10), nullable=False),
        sa.Column("visit_code", sa.String(16), nullable=False),
        sa.Column("visit_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_role_read", "notifications", ["role", "read_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("events")
    op.drop_table("checkout_requests")
    op.drop_table("visits")
    op.drop_table("invites")
    op.drop_table("invite_quotas")
    op.drop_table("code_claims")
