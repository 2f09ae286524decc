"""Notification sink — stores role-scoped alerts and hands them to delivery.

Delivery is a logging stub; real e-mail/SMS is not wired up. Dashboards poll
``list_notifications`` for their role.
"""

import logging
import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.clock import Clock, clock as system_clock
from visitgate.errors import NotFoundError, ValidationError
from visitgate.models.enums import Role
from visitgate.models.notification import Notification
from visitgate.services.store import flush

logger = logging.getLogger(__name__)

VALID_ROLES: set[str] = {role.value for role in Role}


class Delivery(Protocol):
    def dispatch(self, notification: Notification) -> None: ...


class NotificationSink(Protocol):
    async def create(
        self,
        role: str,
        title: str,
        body: str,
        level: str,
        visit_code: str,
        visit_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ) -> Notification: ...


class LoggingDelivery:
    """Outbound channel stub: records what would have been sent."""

    def dispatch(self, notification: Notification) -> None:
        logger.info(
            "[%s] %s -> %s: %s (visit %s)",
            notification.level.upper(),
            notification.title,
            notification.role,
            notification.body,
            notification.visit_code,
        )


class DatabaseNotificationSink:
    """Persist notifications in the caller's session, then dispatch them.

    Sharing the session keeps a notification atomic with the event that
    caused it.
    """

    def __init__(self, db: AsyncSession, clock: Clock | None = None, delivery: Delivery | None = None) -> None:
        self.db = db
        self.clock = clock or system_clock
        self.delivery = delivery or LoggingDelivery()

    async def create(
        self,
        role: str,
        title: str,
        body: str,
        level: str,
        visit_code: str,
        visit_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ) -> Notification:
        notification = Notification(
            role=role,
            title=title,
            body=body,
            level=level,
            visit_code=visit_code,
            visit_id=visit_id,
            created_at=created_at or self.clock.now(),
        )
        self.db.add(notification)
        await flush(self.db)
        self.delivery.dispatch(notification)
        return notification


def _check_role(role: str) -> str:
    role = (role or "").strip().upper()
    if role not in VALID_ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(sorted(VALID_ROLES))}", reason="role")
    return role


async def list_notifications(
    db: AsyncSession, role: str, unread_only: bool = True, limit: int = 20
) -> list[Notification]:
    """Newest notifications for ``role``."""
    query = select(Notification).where(Notification.role == _check_role(role))
    if unread_only:
        query = query.where(Notification.read_at.is_(None))
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def mark_notification_read(db: AsyncSession, clock: Clock, notification_id: uuid.UUID) -> Notification:
    """Mark read; repeated calls keep the first read time."""
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.read_at is None:
        notification.read_at = clock.now()
        await flush(db)
    return notification
