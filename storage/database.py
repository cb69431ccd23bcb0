"""
Storage - Async Database Engine.

============================================================
RESPONSIBILITY
============================================================
Owns the SQLAlchemy async engine and session factory for the
off-chain store.

- Explicit transaction boundaries (commit or roll back as a unit)
- Table creation at startup
- Trivial-read liveness check for health probes
- Hard failures on persistence errors

============================================================
USAGE
============================================================
    database = Database(DatabaseConfig(url="sqlite+aiosqlite:///escrow.db"))
    await database.create_all()

    async with database.transaction() as session:
        session.add(model)
        # Commits automatically at end

============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import DatabaseConfig
from storage.models import Base


logger = logging.getLogger(__name__)


class DatabasePersistenceError(Exception):
    """A transaction failed and was rolled back."""
    pass


class Database:
    """
    Async engine + session factory.

    One instance per process, created by the composition root and
    passed to the store and sinks.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        engine: Optional[AsyncEngine] = None,
    ):
        self._config = config
        self._engine = engine or self._create_engine(config)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(config: DatabaseConfig) -> AsyncEngine:
        logger.info(f"Creating database engine for: {config.url.split('@')[-1]}")

        kwargs = {"echo": config.echo, "pool_pre_ping": True}
        if not config.url.startswith("sqlite"):
            kwargs["pool_size"] = config.pool_size

        engine = create_async_engine(config.url, **kwargs)

        if config.url.startswith("sqlite"):
            # SQLite needs foreign keys switched on per connection
            @event.listens_for(engine.sync_engine, "connect")
            def on_connect(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    # =========================================================
    # SESSION MANAGEMENT
    # =========================================================

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Session for reads. Caller commits if it writes.

        On exception the session is rolled back and the error re-raised.
        """
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Database error, rolling back: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs.
        Rolls back on ANY exception and re-raises it unchanged.
        """
        session = self._session_factory()
        try:
            async with session.begin():
                yield session
            logger.debug("Database transaction committed successfully")
        except Exception as e:
            logger.warning(f"Database transaction rolled back: {e}")
            raise
        finally:
            await session.close()

    # =========================================================
    # INITIALIZATION / HEALTH
    # =========================================================

    async def create_all(self) -> None:
        """
        Create all tables defined in ORM models.

        Raises:
            DatabasePersistenceError if table creation fails
        """
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabasePersistenceError(f"Table creation failed: {e}") from e

    async def health_check(self) -> None:
        """
        Trivial read against the database.

        Raises:
            SQLAlchemyError if the database is unreachable
        """
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()

    async def dispose(self) -> None:
        await self._engine.dispose()
        logger.info("Database engine disposed")
