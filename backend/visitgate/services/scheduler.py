"""Recurring escalation sweep, decoupled from requests.

Runs inside the API process as an asyncio task started by the FastAPI
lifespan. Overlapping with on-demand sweeps is safe: the event ledger
makes every threshold fire once.
"""

import asyncio
import contextlib
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from visitgate.clock import Clock
from visitgate.services.escalation import SweepReport, run_sweep

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Periodically run :func:`run_sweep` in a fresh session and commit."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock,
        interval_seconds: float = 60.0,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepReport:
        async with self.session_factory() as session:
            try:
                report = await run_sweep(session, self.clock.now())
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep ticking; unfired thresholds are picked up next time.
                logger.exception("Scheduled escalation sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting escalation sweep every %.0fs", self.interval_seconds)
        self._task = asyncio.create_task(self._loop(), name="escalation-sweep")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Escalation sweep stopped")
