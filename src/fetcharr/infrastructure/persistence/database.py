"""Database session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fetcharr.config import DatabaseSettings

logger = logging.getLogger(__name__)


class Database:
    """Async engine + session factory for the blocklist/cooldown/pending tables."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings

        engine_kwargs: dict[str, Any] = {"echo": settings.echo}
        if "sqlite" in settings.url:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": 30,  # Wait up to 30s for lock
            }

        self._engine = create_async_engine(settings.url, **engine_kwargs)

        if "sqlite" in settings.url:
            self._enable_sqlite_wal()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    # Hey future me - WAL lets the search cycle READ the blocklist while the queue
    # poller WRITES a new entry. Without it SQLite serializes readers behind the
    # writer and searches stall for the duration of every poll.
    def _enable_sqlite_wal(self) -> None:
        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                # Rollback on any exception, then re-raise
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all tables (startup and tests)."""
        from fetcharr.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Database tables ensured at %s", self.settings.url)

    async def drop_tables(self) -> None:
        """Drop all tables (for testing only)."""
        from fetcharr.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        await self._engine.dispose()
