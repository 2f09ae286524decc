"""Overstay escalation sweep.

Once a host starts checkout, the visitor is expected at the gate. Each
sweep measures time since ``checkout_requested_at`` for every open visit
and fires every threshold that has been crossed but not yet recorded:

* +10, +13 and +15 minutes notify SECURITY
* +16 minutes escalates to ADMIN

The ``events`` table doubles as the idempotency ledger: ``(visit_id, type)``
is unique, so a threshold fires once per visit no matter how often, how
late, or how concurrently the sweep runs. Sweeps may be sparse; a single
pass after a long gap fires every skipped threshold.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.clock import ensure_utc
from visitgate.errors import PersistenceError
from visitgate.models.enums import EventType, NotifyLevel, Role, statuses_below
from visitgate.models.event import Event
from visitgate.models.visit import Visit
from visitgate.services.notification_service import DatabaseNotificationSink, NotificationSink
from visitgate.services.store import flush, savepoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationThreshold:
    """One row of the escalation table."""

    min_elapsed_minutes: int
    role: str
    event_type: str
    level: str
    title: str


THRESHOLDS: tuple[EscalationThreshold, ...] = (
    EscalationThreshold(10, Role.SECURITY.value, EventType.OVERDUE_10.value, NotifyLevel.WARN.value, "Visitor overdue (10m)"),
    EscalationThreshold(13, Role.SECURITY.value, EventType.OVERDUE_13.value, NotifyLevel.WARN.value, "Visitor overdue (13m)"),
    EscalationThreshold(15, Role.SECURITY.value, EventType.OVERDUE_15.value, NotifyLevel.DANGER.value, "Visitor overdue (15m)"),
    EscalationThreshold(16, Role.ADMIN.value, EventType.ESCALATED_16.value, NotifyLevel.DANGER.value, "Escalation: visitor overstayed"),
)

THRESHOLD_TYPES: tuple[str, ...] = tuple(t.event_type for t in THRESHOLDS)


@dataclass(frozen=True)
class FiredThreshold:
    visit_id: uuid.UUID
    visit_code: str
    event_type: str
    role: str
    elapsed_min: float


@dataclass
class SweepReport:
    """What a single sweep did."""

    swept_at: datetime
    visits_scanned: int = 0
    fired: list[FiredThreshold] = field(default_factory=list)
    failed_visit_ids: list[uuid.UUID] = field(default_factory=list)


def elapsed_minutes(requested_at: datetime, now: datetime) -> float:
    return (ensure_utc(now) - ensure_utc(requested_at)).total_seconds() / 60


async def _fired_types(db: AsyncSession, visit_ids: list[uuid.UUID]) -> dict[uuid.UUID, set[str]]:
    """Escalation events already in the ledger, per visit."""
    result = await db.execute(
        select(Event.visit_id, Event.type).where(
            Event.visit_id.in_(visit_ids),
            Event.type.in_(THRESHOLD_TYPES),
        )
    )
    fired: dict[uuid.UUID, set[str]] = defaultdict(set)
    for visit_id, event_type in result.all():
        fired[visit_id].add(event_type)
    return fired


async def _fire_threshold(
    db: AsyncSession,
    sink: NotificationSink,
    visit_id: uuid.UUID,
    visit_code: str,
    threshold: EscalationThreshold,
    elapsed_min: float,
    now: datetime,
) -> None:
    """Append the ledger event, notify the role, and bump status if forward.

    Must run inside a savepoint: the three writes stand or fall together.
    """
    db.add(
        Event(
            visit_id=visit_id,
            type=threshold.event_type,
            note=f"Elapsed: {elapsed_min:.1f}m",
            meta={"elapsed_min": round(elapsed_min, 2), "threshold_min": threshold.min_elapsed_minutes},
            occurred_at=now,
        )
    )
    # Ledger row first: a concurrent sweep that already fired this threshold fails here.
    await flush(db)

    await sink.create(
        role=threshold.role,
        title=threshold.title,
        body=f"Visit {visit_code} has exceeded exit grace period ({elapsed_min:.0f} min since checkout started).",
        level=threshold.level,
        visit_code=visit_code,
        visit_id=visit_id,
        created_at=now,
    )

    # Status only moves forward; a late lower threshold never drags it back.
    await db.execute(
        update(Visit)
        .where(Visit.id == visit_id, Visit.status.in_(statuses_below(threshold.event_type)))
        .values(status=threshold.event_type)
    )


async def _sweep_visit(
    db: AsyncSession,
    sink: NotificationSink,
    visit_id: uuid.UUID,
    visit_code: str,
    requested_at: datetime,
    already_fired: set[str],
    now: datetime,
) -> list[FiredThreshold]:
    elapsed_min = elapsed_minutes(requested_at, now)
    fired: list[FiredThreshold] = []

    for threshold in THRESHOLDS:
        if elapsed_min < threshold.min_elapsed_minutes:
            break
        if threshold.event_type in already_fired:
            continue
        try:
            async with savepoint(db):
                await _fire_threshold(db, sink, visit_id, visit_code, threshold, elapsed_min, now)
        except IntegrityError:
            logger.info("%s for visit %s was fired by a concurrent sweep", threshold.event_type, visit_code)
            continue

        logger.info(
            "Visit %s crossed %s after %.1f min, notified %s",
            visit_code,
            threshold.event_type,
            elapsed_min,
            threshold.role,
        )
        fired.append(
            FiredThreshold(
                visit_id=visit_id,
                visit_code=visit_code,
                event_type=threshold.event_type,
                role=threshold.role,
                elapsed_min=round(elapsed_min, 2),
            )
        )
    return fired


async def run_sweep(db: AsyncSession, now: datetime, sink: NotificationSink | None = None) -> SweepReport:
    """Fire every crossed, unfired threshold for open, clock-running visits.

    Pure function of ``now`` and store state: calling it again without time
    passing changes nothing. A storage failure on one visit is logged and
    that visit is retried by the next sweep; the others still proceed.

    Does not commit; the caller owns the transaction.
    """
    now = ensure_utc(now)
    sink = sink or DatabaseNotificationSink(db)
    report = SweepReport(swept_at=now)

    result = await db.execute(
        select(Visit.id, Visit.code, Visit.checkout_requested_at)
        .where(Visit.checkout_requested_at.is_not(None), Visit.checked_out_at.is_(None))
        .order_by(Visit.checkout_requested_at.asc())
    )
    rows = result.all()
    if not rows:
        return report

    ledger = await _fired_types(db, [row.id for row in rows])

    for row in rows:
        report.visits_scanned += 1
        try:
            async with savepoint(db):
                fired = await _sweep_visit(
                    db, sink, row.id, row.code, row.checkout_requested_at, ledger.get(row.id, set()), now
                )
        except (PersistenceError, SQLAlchemyError):
            logger.exception("Escalation sweep failed for visit %s; it will be retried", row.code)
            report.failed_visit_ids.append(row.id)
            continue
        report.fired.extend(fired)

    if report.fired or report.failed_visit_ids:
        logger.info(
            "Sweep at %s: %d open visits, %d thresholds fired, %d failed",
            now.isoformat(),
            report.visits_scanned,
            len(report.fired),
            len(report.failed_visit_ids),
        )
    return report
