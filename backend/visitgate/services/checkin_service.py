"""Gate check-in: invite codes and walk-ins become open visits."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from visitgate.clock import Clock
from visitgate.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from visitgate.models.enums import Decision, EventType, InviteStatus, VisitKind, VisitStatus
from visitgate.models.event import Event
from visitgate.models.invite import Invite
from visitgate.models.visit import Visit
from visitgate.services.codes import claim_code, normalize_code
from visitgate.services.identity import ensure_identity_free, normalize_email
from visitgate.services.store import find_invite_by_code, savepoint

logger = logging.getLogger(__name__)


def _invite_state_conflict(invite: Invite) -> ConflictError | None:
    if invite.status == InviteStatus.CANCELLED.value:
        return ConflictError(ConflictReason.ALREADY_CANCELLED, "This invite was cancelled by the host")
    if invite.status == InviteStatus.CHECKED_IN.value:
        return ConflictError(ConflictReason.ALREADY_CHECKED_IN, "That invite has already been checked in")
    return None


async def check_in_by_code(db: AsyncSession, clock: Clock, code: str) -> Visit:
    """Consume today's invite and open a visit for it.

    Raises, in order of precedence:
        ValidationError: empty code.
        NotFoundError: no invite carries this code.
        ConflictError(WrongDay): the invite is for another day.
        ConflictError(AlreadyCancelled | AlreadyCheckedIn): the invite is not pending.
        ConflictError(DuplicateActiveIdentity): the visitor already has an open visit.
    """
    code = normalize_code(code)
    if not code:
        raise ValidationError("Enter an invite code", reason="code")

    invite = await find_invite_by_code(db, code)
    if invite is None:
        raise NotFoundError("No invite matches that code")
    if invite.for_date != clock.today():
        raise ConflictError(ConflictReason.WRONG_DAY, "That invite is not valid for today")
    conflict = _invite_state_conflict(invite)
    if conflict is not None:
        raise conflict

    await ensure_identity_free(db, invite.visitor_id_number)

    now = clock.now()
    result = await db.execute(
        update(Invite)
        .where(Invite.id == invite.id, Invite.status == InviteStatus.PENDING.value)
        .values(status=InviteStatus.CHECKED_IN.value, checked_in_at=now)
    )
    if result.rowcount == 0:
        await db.refresh(invite)
        raise _invite_state_conflict(invite) or ConflictError(
            ConflictReason.INVALID_STATE, "Invite changed while checking in"
        )
    await db.refresh(invite)

    visit = Visit(
        id=uuid.uuid4(),
        code=invite.code,
        kind=VisitKind.INVITE.value,
        id_number=invite.visitor_id_number,
        full_name=invite.visitor_name,
        destination=invite.destination,
        purpose=invite.purpose,
        host_name=invite.host_name,
        invite_id=invite.id,
        decision=Decision.APPROVED.value,
        status=VisitStatus.CHECKED_IN.value,
        created_at=now,
    )
    try:
        async with savepoint(db):
            db.add(visit)
            db.add(_checked_in_event(visit, now, kind=VisitKind.INVITE.value))
    except IntegrityError:
        # Lost a race on the open-identity index.
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_IDENTITY,
            "That ID is already active on campus. Check the visitor out first.",
        ) from None

    logger.info("Checked in invite %s for ID %s", invite.code, invite.visitor_id_number)
    return visit


async def register_walk_in(
    db: AsyncSession,
    clock: Clock,
    id_number: str,
    full_name: str,
    destination: str,
    purpose: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    host_name: str | None = None,
) -> Visit:
    """Register an unannounced visitor; walk-ins are auto-approved.

    Raises:
        ValidationError: ID, name or destination missing/too short.
        ConflictError(DuplicateActiveIdentity): ID number or e-mail already has an open visit.
        KeyspaceExhaustedError: no free code could be claimed.
    """
    id_number = (id_number or "").strip()
    full_name = (full_name or "").strip()
    destination = (destination or "").strip()
    email = normalize_email(email)

    if len(id_number) < 4:
        raise ValidationError("ID number must be at least 4 characters", reason="id_number")
    if len(full_name) < 2:
        raise ValidationError("Full name must be at least 2 characters", reason="full_name")
    if not destination:
        raise ValidationError("Destination is required", reason="destination")

    await ensure_identity_free(db, id_number, email=email)

    now = clock.now()
    code = await claim_code(db, VisitKind.WALKIN.value, now)
    visit = Visit(
        id=uuid.uuid4(),
        code=code,
        kind=VisitKind.WALKIN.value,
        id_number=id_number,
        full_name=full_name,
        email=email,
        phone=(phone or "").strip() or None,
        destination=destination,
        purpose=(purpose or "").strip() or None,
        host_name=(host_name or "").strip() or None,
        decision=Decision.APPROVED.value,
        status=VisitStatus.CHECKED_IN.value,
        created_at=now,
    )
    try:
        async with savepoint(db):
            db.add(visit)
            db.add(_checked_in_event(visit, now, kind=VisitKind.WALKIN.value))
    except IntegrityError:
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_IDENTITY,
            "That ID or e-mail is already active on campus.",
        ) from None

    logger.info("Registered walk-in %s for ID %s", code, id_number)
    return visit


def _checked_in_event(visit: Visit, now: datetime, kind: str) -> Event:
    return Event(
        visit_id=visit.id,
        type=EventType.CHECKED_IN.value,
        note=f"Checked in ({kind})",
        meta={"code": visit.code},
        occurred_at=now,
    )


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------


async def list_visits(
    db: AsyncSession,
    scope: str = "active",
    status: str | None = None,
    search: str | None = None,
    limit: int = 100,
) -> list[Visit]:
    """Visits newest first.

    ``scope`` is ``active`` (open), ``checked_out`` or ``all``; ``search``
    matches name, ID number or code.
    """
    query = select(Visit)
    if scope == "active":
        query = query.where(Visit.checked_out_at.is_(None))
    elif scope == "checked_out":
        query = query.where(Visit.checked_out_at.is_not(None))
    if status is not None:
        query = query.where(Visit.status == status)
    if search:
        term = search.strip()
        query = query.where(
            or_(
                Visit.full_name.ilike(f"%{term}%"),
                Visit.id_number == term,
                Visit.code == normalize_code(term),
            )
        )

    result = await db.execute(query.order_by(Visit.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def get_visit(db: AsyncSession, visit_id: uuid.UUID) -> Visit:
    """Fetch one visit with its event trail. Raises ``NotFoundError``."""
    result = await db.execute(
        select(Visit)
        .options(selectinload(Visit.events))
        .where(Visit.id == visit_id)
        .execution_options(populate_existing=True)
    )
    visit = result.scalar_one_or_none()
    if visit is None:
        raise NotFoundError("Visit not found")
    return visit
