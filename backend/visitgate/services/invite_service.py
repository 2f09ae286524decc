"""Hosts pre-registering visitors for today."""

import logging
import re
import uuid
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.clock import Clock
from visitgate.config import settings
from visitgate.errors import ConflictError, ConflictReason, NotFoundError, QuotaExceededError, ValidationError
from visitgate.models.enums import InviteStatus, VisitKind
from visitgate.models.invite import Invite
from visitgate.models.registry import InviteQuota
from visitgate.services.codes import claim_code, release_code
from visitgate.services.store import flush, savepoint

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_KEY_CHARS = re.compile(r"[^a-z0-9 ]")


def normalize_host_key(host_name: str) -> str:
    """Collapse a host's display name into a stable key ("Dr. Jane  Doe" -> "dr_jane_doe")."""
    key = _WHITESPACE.sub(" ", host_name.strip().lower())
    key = _NON_KEY_CHARS.sub("", key)
    return _WHITESPACE.sub("_", key)


def _clean(value: str | None) -> str:
    return (value or "").strip()


# ---------------------------------------------------------------------------
# Quota counter
# ---------------------------------------------------------------------------


async def _quota_used(db: AsyncSession, host_key: str, for_date: date) -> int:
    result = await db.execute(
        select(InviteQuota.active_count).where(
            InviteQuota.host_key == host_key,
            InviteQuota.for_date == for_date,
        )
    )
    return result.scalar_one_or_none() or 0


async def _reserve_quota_slot(db: AsyncSession, host_key: str, for_date: date, limit: int) -> None:
    """Take one slot with a conditional UPDATE; raise when the day is full."""
    if await db.get(InviteQuota, (host_key, for_date)) is None:
        try:
            async with savepoint(db):
                db.add(InviteQuota(host_key=host_key, for_date=for_date, active_count=0))
        except IntegrityError:
            # Another request created the row first; the UPDATE below still applies.
            logger.debug("Quota row for %s on %s already exists", host_key, for_date)

    result = await db.execute(
        update(InviteQuota)
        .where(
            InviteQuota.host_key == host_key,
            InviteQuota.for_date == for_date,
            InviteQuota.active_count < limit,
        )
        .values(active_count=InviteQuota.active_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise QuotaExceededError(f"Daily invite limit reached ({limit}/{limit}) for this host")


async def _release_quota_slot(db: AsyncSession, host_key: str, for_date: date) -> None:
    await db.execute(
        update(InviteQuota)
        .where(
            InviteQuota.host_key == host_key,
            InviteQuota.for_date == for_date,
            InviteQuota.active_count > 0,
        )
        .values(active_count=InviteQuota.active_count - 1)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_invite(
    db: AsyncSession,
    clock: Clock,
    host_name: str,
    visitor_name: str,
    visitor_id_number: str,
    purpose: str,
    destination: str | None = None,
) -> Invite:
    """Create a pending invite for today.

    Raises:
        ValidationError: a field is too short or missing.
        QuotaExceededError: the host already holds the daily maximum of live invites.
        ConflictError(DuplicatePending): the visitor already has a pending invite from this host today.
        KeyspaceExhaustedError: no free code could be claimed.
    """
    host_name = _clean(host_name)
    visitor_name = _clean(visitor_name)
    visitor_id_number = _clean(visitor_id_number)
    purpose = _clean(purpose)
    destination = _clean(destination) or None

    if len(host_name) < 2:
        raise ValidationError("Host name must be at least 2 characters", reason="host_name")
    if len(visitor_name) < 2:
        raise ValidationError("Visitor name must be at least 2 characters", reason="visitor_name")
    if len(visitor_id_number) < 4:
        raise ValidationError("Visitor ID number must be at least 4 characters", reason="visitor_id_number")
    if len(purpose) < 2:
        raise ValidationError("Purpose of visit is required", reason="purpose")

    host_key = normalize_host_key(host_name)
    if not host_key:
        raise ValidationError("Host name must contain letters or digits", reason="host_name")

    now = clock.now()
    for_date = clock.today()
    limit = settings.max_invites_per_host_per_day

    if await _quota_used(db, host_key, for_date) >= limit:
        logger.warning("Host %s hit the daily invite limit for %s", host_key, for_date)
        raise QuotaExceededError(f"Daily invite limit reached ({limit}/{limit}) for this host")

    duplicate = await db.execute(
        select(Invite.id).where(
            Invite.host_key == host_key,
            Invite.for_date == for_date,
            Invite.visitor_id_number == visitor_id_number,
            Invite.status == InviteStatus.PENDING.value,
        )
    )
    if duplicate.first() is not None:
        raise ConflictError(
            ConflictReason.DUPLICATE_PENDING,
            "This visitor already has a pending invite from you today",
        )

    await _reserve_quota_slot(db, host_key, for_date, limit)
    code = await claim_code(db, VisitKind.INVITE.value, now)

    invite = Invite(
        code=code,
        host_name=host_name,
        host_key=host_key,
        visitor_name=visitor_name,
        visitor_id_number=visitor_id_number,
        purpose=purpose,
        destination=destination,
        for_date=for_date,
        status=InviteStatus.PENDING.value,
        created_at=now,
    )
    try:
        async with savepoint(db):
            db.add(invite)
    except IntegrityError:
        raise ConflictError(
            ConflictReason.DUPLICATE_PENDING,
            "This visitor already has a pending invite from you today",
        ) from None

    logger.info("Invite %s created by %s for %s on %s", code, host_key, visitor_id_number, for_date)
    return invite


async def cancel_invite(db: AsyncSession, clock: Clock, invite_id: uuid.UUID, host_name: str) -> Invite:
    """Cancel a still-pending invite, freeing its quota slot and code.

    Raises:
        NotFoundError: no such invite, or it belongs to another host.
        ConflictError(InvalidState): the invite is no longer pending.
    """
    invite = await db.get(Invite, invite_id, populate_existing=True)
    host_name = _clean(host_name)
    if invite is None or (host_name and normalize_host_key(host_name) != invite.host_key):
        raise NotFoundError("Invite not found")

    if invite.status != InviteStatus.PENDING.value:
        raise ConflictError(ConflictReason.INVALID_STATE, f"Only pending invites can be cancelled (is {invite.status})")

    now = clock.now()
    result = await db.execute(
        update(Invite)
        .where(Invite.id == invite.id, Invite.status == InviteStatus.PENDING.value)
        .values(status=InviteStatus.CANCELLED.value, cancelled_at=now)
    )
    if result.rowcount == 0:
        # Checked in by the gate between our read and write.
        raise ConflictError(ConflictReason.INVALID_STATE, "Only pending invites can be cancelled")

    # Bulk UPDATE: reload the instance we return.
    await db.refresh(invite)
    await _release_quota_slot(db, invite.host_key, invite.for_date)
    await release_code(db, invite.code)
    await flush(db)

    logger.info("Invite %s cancelled by %s", invite.code, invite.host_key)
    return invite


async def list_invites(
    db: AsyncSession,
    host_name: str | None = None,
    for_date: date | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[Invite]:
    """Invites newest first, optionally narrowed to one host, day or status."""
    query = select(Invite)
    if host_name:
        query = query.where(Invite.host_key == normalize_host_key(host_name))
    if for_date is not None:
        query = query.where(Invite.for_date == for_date)
    if status is not None:
        query = query.where(Invite.status == status)

    result = await db.execute(query.order_by(Invite.created_at.desc()).limit(limit))
    return list(result.scalars().all())
