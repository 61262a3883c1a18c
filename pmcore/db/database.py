"""
Database engine and connection management.

Builds the async SQLAlchemy engine from settings and exposes it through an
explicit ``Database`` handle. The application creates one handle at start-up
and disposes it at shutdown; stores receive it as a constructor argument.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from pmcore.utils.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def normalize_async_url(url: str) -> str:
    """Map sync driver URLs onto their asyncio drivers."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("sqlite+pysqlite://"):
        return url.replace("sqlite+pysqlite://", "sqlite+aiosqlite://", 1)
    return url


def _engine_kwargs(url: str, settings: Settings) -> dict:
    kwargs: dict = {"echo": settings.echo_sql}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # In-memory SQLite with StaticPool so the schema persists across connections
            kwargs["poolclass"] = StaticPool
            return kwargs
    kwargs.update(
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,
    )
    return kwargs


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ships with foreign keys off; cascades and SET NULL depend on them
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _register_sqlite_lower(dbapi_connection, connection_record):
    # Built-in LOWER() only folds ASCII; replace it with Python's full Unicode folding
    dbapi_connection.create_function("lower", 1, _unicode_lower)


class Database:
    """Owns the async engine (and therefore the bounded connection pool)."""

    def __init__(self, url: Optional[str] = None, *, settings: Optional[Settings] = None, **engine_kwargs) -> None:
        if settings is None:
            settings = get_settings() if url is None else Settings(database_url=url)
        self.settings = settings
        self.url = normalize_async_url(url or settings.database_url)
        kwargs = _engine_kwargs(self.url, settings)
        kwargs.update(engine_kwargs)
        self.engine: AsyncEngine = create_async_engine(self.url, **kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            event.listen(self.engine.sync_engine, "connect", _register_sqlite_lower)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def default_timeout(self) -> Optional[float]:
        return self.settings.operation_timeout

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Check out a connection for reads; returned to the pool on every exit path."""
        async with self.engine.connect() as conn:
            yield conn

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncConnection]:
        """Check out a connection inside a transaction committed on success."""
        async with self.engine.begin() as conn:
            yield conn

    async def ping(self) -> bool:
        async with self.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_all(self) -> None:
        """Create declared tables. Used by tests and local tooling only."""
        from pmcore.db import models  # local import to avoid circular import at module load

        async with self.begin() as conn:
            await conn.run_sync(models.Base.metadata.create_all)

    async def drop_all(self) -> None:
        from pmcore.db import models

        async with self.begin() as conn:
            await conn.run_sync(models.Base.metadata.drop_all)

    async def dispose(self) -> None:
        logger.info("database_dispose: url=%s", self.engine.url.render_as_string(hide_password=True))
        await self.engine.dispose()
