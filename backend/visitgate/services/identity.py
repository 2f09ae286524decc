"""At most one open visit per physical identity.

The partial unique indexes on ``visits`` are what actually hold the line
under concurrency; ``ensure_identity_free`` exists to name the conflict
before we ever hit them.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.errors import ConflictError, ConflictReason
from visitgate.services.store import find_open_visit_by_email, find_open_visit_by_id_number

logger = logging.getLogger(__name__)


def normalize_email(raw: str | None) -> str | None:
    email = (raw or "").strip().lower()
    return email or None


async def ensure_identity_free(
    db: AsyncSession,
    id_number: str,
    email: str | None = None,
) -> None:
    """Raise ``ConflictError(DuplicateActiveIdentity)`` if the identity already has an open visit."""
    existing = await find_open_visit_by_id_number(db, id_number)
    if existing is not None:
        logger.warning("Rejected second open visit for ID %s (open visit %s)", id_number, existing.code)
        raise ConflictError(
            ConflictReason.DUPLICATE_ACTIVE_IDENTITY,
            "That ID is already active on campus. Check the visitor out first.",
        )

    if email:
        existing = await find_open_visit_by_email(db, email)
        if existing is not None:
            logger.warning("Rejected second open visit for e-mail %s (open visit %s)", email, existing.code)
            raise ConflictError(
                ConflictReason.DUPLICATE_ACTIVE_IDENTITY,
                "That e-mail is already active on campus.",
            )
