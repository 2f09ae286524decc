"""Short, human-presentable codes for invites and visits."""

import logging
import re
import secrets
from datetime import datetime
from random import Random

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.config import settings
from visitgate.errors import KeyspaceExhaustedError
from visitgate.models.registry import CodeClaim
from visitgate.services.store import savepoint

logger = logging.getLogger(__name__)

# No 0/O or 1/I/L: codes are read aloud and typed at the gate.
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

_WHITESPACE = re.compile(r"\s+")

_system_random = secrets.SystemRandom()


def normalize_code(raw: str | None) -> str:
    """Strip all whitespace and upper-case, as codes are compared at the boundary."""
    return _WHITESPACE.sub("", raw or "").upper()


def generate_code(
    existing_codes: set[str] | frozenset[str],
    length: int = 7,
    max_attempts: int = 50,
    rng: Random | None = None,
) -> str:
    """Draw a code not present in ``existing_codes``.

    Raises:
        KeyspaceExhaustedError: if every attempt collided.
    """
    rng = rng or _system_random
    for _ in range(max_attempts):
        candidate = "".join(rng.choice(CODE_ALPHABET) for _ in range(length))
        if candidate not in existing_codes:
            return candidate
    raise KeyspaceExhaustedError(
        f"Could not find a free {length}-character code after {max_attempts} attempts"
    )


async def claim_code(
    db: AsyncSession,
    owner_kind: str,
    now: datetime,
    length: int | None = None,
    max_attempts: int | None = None,
) -> str:
    """Generate a code and persist its claim in one atomic step.

    The ``code_claims`` primary key is the arbiter: a candidate that loses a
    race (or was already taken) is remembered and a new one drawn.

    Raises:
        KeyspaceExhaustedError: if no candidate could be claimed.
    """
    length = length or settings.code_length
    max_attempts = max_attempts or settings.code_max_attempts
    collided: set[str] = set()

    for _ in range(max_attempts):
        code = generate_code(collided, length=length, max_attempts=max_attempts)
        try:
            async with savepoint(db):
                db.add(CodeClaim(code=code, owner_kind=owner_kind, claimed_at=now))
        except IntegrityError:
            logger.debug("Code %s already claimed, drawing another", code)
            collided.add(code)
            continue
        return code

    logger.error("Code keyspace exhausted after %d collisions", len(collided))
    raise KeyspaceExhaustedError(f"No free code after {max_attempts} attempts")


async def release_code(db: AsyncSession, code: str) -> None:
    """Give a code back (used when an invite is cancelled)."""
    claim = await db.get(CodeClaim, code)
    if claim is not None:
        await db.delete(claim)
