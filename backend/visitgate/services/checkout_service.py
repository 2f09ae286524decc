"""Checkout: the host starts the exit clock and security confirms the exit."""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.clock import Clock
from visitgate.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from visitgate.models.checkout_request import CheckoutRequest
from visitgate.models.enums import CheckoutStatus, EventType, VisitStatus
from visitgate.models.event import Event
from visitgate.models.visit import Visit
from visitgate.services.codes import normalize_code
from visitgate.services.invite_service import normalize_host_key
from visitgate.services.store import (
    find_open_visit_by_code,
    find_open_visit_by_id_number,
    flush,
    savepoint,
)

logger = logging.getLogger(__name__)

VISITOR_NOT_FOUND = "VisitorNotFound"


async def _active_request(db: AsyncSession, visit_id: uuid.UUID) -> CheckoutRequest | None:
    result = await db.execute(
        select(CheckoutRequest).where(
            CheckoutRequest.visit_id == visit_id,
            CheckoutRequest.status == CheckoutStatus.REQUESTED.value,
        )
    )
    return result.scalar_one_or_none()


async def start_checkout(db: AsyncSession, clock: Clock, host_name: str, code: str) -> CheckoutRequest:
    """Start the exit countdown for the open visit holding ``code``.

    The request timestamp is what the escalation sweep measures from, so a
    second request must never replace it.

    Raises:
        ValidationError: host name or code missing.
        NotFoundError(VisitorNotFound): no open visit carries this code.
        ConflictError(AlreadyRequested): the clock is already running for this visit.
    """
    host_name = (host_name or "").strip()
    code = normalize_code(code)
    if len(host_name) < 2:
        raise ValidationError("Host name must be at least 2 characters", reason="host_name")
    if not code:
        raise ValidationError("Enter the visitor's code", reason="code")

    visit = await find_open_visit_by_code(db, code)
    if visit is None:
        raise NotFoundError("No visitor on campus with that code", reason=VISITOR_NOT_FOUND)

    if visit.checkout_requested_at is not None or await _active_request(db, visit.id) is not None:
        raise ConflictError(ConflictReason.ALREADY_REQUESTED, "Checkout was already started for this visitor")

    now = clock.now()
    request = CheckoutRequest(
        visit_id=visit.id,
        host_name=host_name,
        host_key=normalize_host_key(host_name),
        status=CheckoutStatus.REQUESTED.value,
        requested_at=now,
    )
    try:
        async with savepoint(db):
            db.add(request)
            db.add(
                Event(
                    visit_id=visit.id,
                    type=EventType.HOST_CHECKOUT_STARTED.value,
                    note=f"Checkout started by {host_name}",
                    meta={"host": host_name},
                    occurred_at=now,
                )
            )
    except IntegrityError:
        raise ConflictError(
            ConflictReason.ALREADY_REQUESTED, "Checkout was already started for this visitor"
        ) from None

    visit.checkout_requested_at = now
    visit.checkout_requested_by = host_name
    visit.status = VisitStatus.HOST_CHECKOUT_STARTED.value
    await flush(db)

    logger.info("Checkout clock started for visit %s by %s", visit.code, host_name)
    return request


async def finalize_checkout(db: AsyncSession, clock: Clock, visit_id: uuid.UUID) -> Visit:
    """Confirm the visitor left. Terminal: silences all further escalation.

    Raises:
        NotFoundError(VisitorNotFound): no open visit with this id.
    """
    visit = await db.get(Visit, visit_id, populate_existing=True)
    if visit is None or visit.checked_out_at is not None:
        raise NotFoundError("No open visit with that id", reason=VISITOR_NOT_FOUND)

    previous_status = visit.status
    now = clock.now()
    result = await db.execute(
        update(Visit)
        .where(Visit.id == visit_id, Visit.checked_out_at.is_(None))
        .values(checked_out_at=now, status=VisitStatus.EXIT_CONFIRMED.value)
    )
    if result.rowcount == 0:
        raise NotFoundError("No open visit with that id", reason=VISITOR_NOT_FOUND)

    await db.execute(
        update(CheckoutRequest)
        .where(
            CheckoutRequest.visit_id == visit_id,
            CheckoutRequest.status == CheckoutStatus.REQUESTED.value,
        )
        .values(status=CheckoutStatus.FINALIZED.value, finalized_at=now)
    )
    db.add(
        Event(
            visit_id=visit_id,
            type=EventType.EXIT_CONFIRMED.value,
            note="Exit confirmed at gate",
            meta={"previous_status": previous_status},
            occurred_at=now,
        )
    )
    await flush(db)
    await db.refresh(visit)

    logger.info("Visit %s closed (exit confirmed)", visit.code)
    return visit


async def resolve_open_visit(db: AsyncSession, code: str | None = None, id_number: str | None = None) -> Visit:
    """Find the open visit for a gate exit, by code or by ID number.

    Raises:
        ValidationError: neither code nor ID number given.
        NotFoundError(VisitorNotFound): nothing open matches.
    """
    code = normalize_code(code)
    id_number = (id_number or "").strip()
    if not code and not id_number:
        raise ValidationError("Provide a visitor code or ID number", reason="code")

    visit = await find_open_visit_by_code(db, code) if code else await find_open_visit_by_id_number(db, id_number)
    if visit is None:
        raise NotFoundError("No visitor on campus matches", reason=VISITOR_NOT_FOUND)
    return visit


async def list_checkout_requests(
    db: AsyncSession, status: str | None = CheckoutStatus.REQUESTED.value, limit: int = 100
) -> list[CheckoutRequest]:
    """Checkout requests oldest first, so security sees the longest-waiting exit on top."""
    query = select(CheckoutRequest)
    if status is not None:
        query = query.where(CheckoutRequest.status == status)
    result = await db.execute(query.order_by(CheckoutRequest.requested_at.asc()).limit(limit))
    return list(result.scalars().all())
