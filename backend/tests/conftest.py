"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets a fresh in-memory SQLite database (aiosqlite) with all tables.
- The session runs inside an outer transaction that rolls back after the test.
- Time comes from a ``FrozenClock`` the test moves forward explicitly.
"""

import os

# Point the app at SQLite and keep the background sweep off before anything imports settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SWEEP_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import visitgate.models  # noqa: E402, F401
from visitgate.clock import Clock, get_clock  # noqa: E402
from visitgate.database import Base, enable_sqlite_savepoints, get_db  # noqa: E402
from visitgate.main import app  # noqa: E402

# Mid-morning UTC, so "today" is the same day for the whole test.
START = datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START, tz_name: str = "UTC") -> None:
        super().__init__(tz_name)
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, minutes: float = 0, days: int = 0) -> datetime:
        self.current = self.current + timedelta(minutes=minutes, days=days)
        return self.current


# ---------------------------------------------------------------------------
# Per-test: fresh schema, transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory database per test; StaticPool keeps it on a single connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def today(clock: FrozenClock) -> date:
    return clock.today()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, clock: FrozenClock) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test session and frozen clock."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience helpers: invites and visits through the services
# ---------------------------------------------------------------------------


@pytest.fixture
def make_invite(db_session: AsyncSession, clock: FrozenClock):
    """Factory creating a pending invite for today."""
    from visitgate.services.invite_service import create_invite

    async def _make(
        host_name: str = "Dr. Jane Doe",
        visitor_name: str = "Alex Visitor",
        visitor_id_number: str = "ID-1001",
        purpose: str = "Project meeting",
        destination: str | None = "Building C",
    ):
        return await create_invite(
            db_session,
            clock,
            host_name=host_name,
            visitor_name=visitor_name,
            visitor_id_number=visitor_id_number,
            purpose=purpose,
            destination=destination,
        )

    return _make


@pytest.fixture
def make_walk_in(db_session: AsyncSession, clock: FrozenClock):
    """Factory registering a walk-in visit."""
    from visitgate.services.checkin_service import register_walk_in

    async def _make(
        id_number: str = "WALK-2001",
        full_name: str = "Sam Walker",
        destination: str = "Library",
        email: str | None = None,
    ):
        return await register_walk_in(
            db_session,
            clock,
            id_number=id_number,
            full_name=full_name,
            destination=destination,
            email=email,
        )

    return _make
