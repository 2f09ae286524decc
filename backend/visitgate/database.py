"""Async SQLAlchemy engine, session factory, and declarative base."""

import uuid
from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from visitgate.config import settings


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLite honour SAVEPOINT inside an explicit transaction.

    The sqlite driver emits its own BEGIN lazily, which breaks nested
    transactions. Disable that and emit BEGIN ourselves, as described in the
    SQLAlchemy SQLite dialect documentation.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


def _make_engine() -> AsyncEngine:
    if settings.is_sqlite:
        sqlite_engine = create_async_engine(settings.async_database_url, echo=settings.debug)
        enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine
    return create_async_engine(
        settings.async_database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = _make_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDPrimaryKeyMixin:
    """Mixin that adds a UUID primary key column."""

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependency injection.

    The whole request runs in one transaction: committed when the endpoint
    returns, rolled back when it raises (including typed domain errors).
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
