"""
Durable store handle.

Wraps a pooled SQLAlchemy async engine with connect-with-retry, a trivial
health-check query and a graceful close that waits for checked-out
connections before disposing the pool. One instance is constructed at startup
and passed explicitly to the services that need it.
"""
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import (DisconnectionError, InterfaceError,
                            OperationalError, SQLAlchemyError)
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import DeclarativeBase

from taskboard.domain.exceptions import BackendUnavailableException
from taskboard.infrastructure.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Errors meaning "the store could not be reached", as opposed to a rejected statement
CONNECTIVITY_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    OSError,
)


# Modern SQLAlchemy 2.0 pattern
class Base(DeclarativeBase):
    """Base class for all database models"""

    pass


class Database:
    """
    Process-wide handle on the relational store.

    Usage:
        database = Database(settings)
        await database.connect()
        async with database.transaction() as session:
            ...
        await database.close()
    """

    def __init__(self, settings: Settings | None = None, engine: AsyncEngine | None = None):
        """
        Args:
            settings: Application settings (defaults to get_settings())
            engine: Optional pre-built engine (for testing/DI)
        """
        self.settings = settings or get_settings()
        self._engine = engine
        self._sessionmaker = self._build_sessionmaker(engine) if engine is not None else None
        self._connected = False

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise BackendUnavailableException("database", "engine not initialized, call connect() first")
        return self._engine

    def is_connected(self) -> bool:
        return self._connected and self._engine is not None

    def _build_engine(self) -> AsyncEngine:
        url = self.settings.database_url
        options: dict[str, Any] = {
            "echo": self.settings.database_echo,
            "pool_pre_ping": True,
        }
        if not url.startswith("sqlite"):
            # pool_size=0 means "unbounded" to QueuePool, so keep at least one
            pool_size = max(self.settings.database_pool_min, 1)
            options.update(
                pool_size=pool_size,
                max_overflow=max(self.settings.database_pool_max - pool_size, 0),
                pool_timeout=self.settings.database_pool_timeout,
                pool_recycle=self.settings.database_pool_recycle,
            )
        if "postgresql" in url:
            options["connect_args"] = {
                "server_settings": {"jit": "off"},
                "command_timeout": self.settings.database_command_timeout,
            }
        return create_async_engine(url, **options)

    @staticmethod
    def _build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def connect(self, max_retries: int | None = None) -> None:
        """
        Establish the pool and verify it with a round trip.

        Retries with exponential backoff (2s, 4s, 8s, ...) and raises
        BackendUnavailableException once max_retries attempts have failed:
        the service cannot run without its store.
        """
        retries = max(max_retries if max_retries is not None else self.settings.database_connect_retries, 1)

        if self._engine is None:
            self._engine = self._build_engine()
            self._sessionmaker = self._build_sessionmaker(self._engine)

        last_error: BaseException | None = None
        for attempt in range(1, retries + 1):
            try:
                logger.info("Attempting to connect to database (attempt %d/%d)", attempt, retries)
                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                self._connected = True
                logger.info(
                    "Database connection established (pool %d-%d)",
                    self.settings.database_pool_min,
                    self.settings.database_pool_max,
                )
                return
            except (SQLAlchemyError, OSError) as e:
                last_error = e
                logger.error("Database connection attempt %d/%d failed: %s", attempt, retries, e)
                if attempt < retries:
                    wait_time = 2**attempt
                    logger.info("Retrying database connection in %d seconds...", wait_time)
                    await asyncio.sleep(wait_time)

        raise BackendUnavailableException(
            "database", f"connection failed after {retries} attempts: {last_error}"
        )

    async def health_check(self) -> dict[str, Any]:
        """Issue SELECT 1 and report the outcome; never raises"""
        if not self.is_connected():
            return {"healthy": False, "message": "Database not initialized", "details": {}}

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            return {
                "healthy": False,
                "message": "Database health check failed",
                "details": {"error": str(e)},
            }

        return {
            "healthy": True,
            "message": "Database connection is healthy",
            "details": {"pool": self.engine.pool.status()},
        }

    def _checked_out(self) -> int:
        checkedout = getattr(self.engine.pool, "checkedout", None)
        return checkedout() if callable(checkedout) else 0

    async def _wait_until_idle(self) -> None:
        while self._checked_out() > 0:
            await asyncio.sleep(0.05)

    async def close(self, grace_period: float | None = None) -> None:
        """
        Drain and dispose the pool.

        Waits up to grace_period seconds for in-flight sessions to return
        their connections, then disposes the engine regardless.
        """
        if self._engine is None:
            return

        grace = grace_period if grace_period is not None else self.settings.shutdown_grace_period
        try:
            await asyncio.wait_for(self._wait_until_idle(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(
                "Shutdown grace period of %.1fs elapsed with %d connection(s) still checked out",
                grace,
                self._checked_out(),
            )

        await self._engine.dispose()
        self._connected = False
        logger.info("Database engine disposed")

    def _get_sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        if self._sessionmaker is None:
            raise BackendUnavailableException("database", "not connected, call connect() first")
        return self._sessionmaker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Session for read operations.
        Does not commit - read-only operations don't need commits.
        """
        async with self._get_sessionmaker()() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session for write operations with automatic transaction management:
        - Begins transaction automatically
        - Commits on success
        - Rolls back on exception
        - Closes session automatically
        """
        try:
            async with self._get_sessionmaker().begin() as session:
                yield session
        except CONNECTIVITY_ERRORS as e:
            raise BackendUnavailableException("database", str(e)) from e

    async def create_schema(self) -> None:
        """Create all tables from model metadata (development and tests; production uses migrations)"""
        # Import models so every table is registered on Base.metadata
        from taskboard.infrastructure.persistence import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_schema(self) -> None:
        from taskboard.infrastructure.persistence import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
