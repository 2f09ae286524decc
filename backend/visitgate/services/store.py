"""Lookups shared by the lifecycle services.

Uniqueness is enforced by the indexes declared on the models; the helpers
here only read, plus ``flush``/``savepoint`` which translate driver failures
into :class:`~visitgate.errors.PersistenceError`.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.errors import PersistenceError
from visitgate.models.enums import InviteStatus
from visitgate.models.invite import Invite
from visitgate.models.visit import Visit

logger = logging.getLogger(__name__)


@asynccontextmanager
async def savepoint(db: AsyncSession) -> AsyncIterator[None]:
    """Run a block in a SAVEPOINT.

    ``IntegrityError`` propagates untouched so callers can map a violated
    constraint to a domain conflict; any other database failure becomes a
    ``PersistenceError``. Either way the savepoint is rolled back and the
    outer transaction stays usable.
    """
    try:
        async with db.begin_nested():
            yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error("Database error inside savepoint: %s", exc)
        raise PersistenceError("Storage failure, please retry") from exc


async def flush(db: AsyncSession) -> None:
    """Flush pending changes, surfacing storage failures as ``PersistenceError``."""
    try:
        await db.flush()
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error("Database flush failed: %s", exc)
        raise PersistenceError("Storage failure, please retry") from exc


async def find_open_visit_by_id_number(db: AsyncSession, id_number: str) -> Visit | None:
    result = await db.execute(
        select(Visit).where(Visit.id_number == id_number, Visit.checked_out_at.is_(None))
    )
    return result.scalars().first()


async def find_open_visit_by_email(db: AsyncSession, email: str) -> Visit | None:
    result = await db.execute(select(Visit).where(Visit.email == email, Visit.checked_out_at.is_(None)))
    return result.scalars().first()


async def find_open_visit_by_code(db: AsyncSession, code: str) -> Visit | None:
    result = await db.execute(select(Visit).where(Visit.code == code, Visit.checked_out_at.is_(None)))
    return result.scalar_one_or_none()


async def find_invite_by_code(db: AsyncSession, code: str) -> Invite | None:
    """Return the invite holding ``code``, preferring a live one over cancelled history."""
    result = await db.execute(
        select(Invite)
        .where(Invite.code == code)
        .order_by((Invite.status == InviteStatus.CANCELLED.value).asc(), Invite.created_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
