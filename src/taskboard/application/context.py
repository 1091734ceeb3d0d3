"""
Application context: every process-wide handle, constructed explicitly.

Nothing here is a module-level singleton. A hosting process (HTTP app,
worker, test) builds one AppContext, starts it, passes it (or its services)
to whatever needs them and stops it on the way out.
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from taskboard.application.services import SubjectService, WorkItemService
from taskboard.infrastructure.cache.invalidation import CacheInvalidator
from taskboard.infrastructure.cache.redis_cache import CacheService
from taskboard.infrastructure.cache.redis_client import RedisBackend
from taskboard.infrastructure.config.settings import Settings, get_settings
from taskboard.infrastructure.persistence.database import Database
from taskboard.shared.telemetry.logging import get_logger, setup_logging

logger = get_logger(__name__)


class AppContext:
    """Owns the database and cache handles and the services built on them"""

    def __init__(
        self,
        settings: Settings | None = None,
        database: Database | None = None,
        redis_backend: RedisBackend | None = None,
    ):
        """
        Args:
            settings: Application settings (defaults to get_settings())
            database: Optional pre-built store handle (for testing/DI)
            redis_backend: Optional pre-built cache backend (for testing/DI)
        """
        self.settings = settings or get_settings()
        self.database = database or Database(self.settings)
        self.redis_backend = redis_backend or RedisBackend(self.settings)
        self.cache = CacheService(self.redis_backend, self.settings)
        self.invalidator = CacheInvalidator(self.cache)
        self.subjects = SubjectService(self.database, self.cache, self.invalidator)
        self.work_items = WorkItemService(self.database, self.cache, self.invalidator)

    async def start(self) -> None:
        """
        Configure logging and connect both backends.

        Raises:
            BackendUnavailableException: If the database cannot be reached
                (or Redis, when redis_required is set)
        """
        setup_logging(self.settings)
        logger.info("Starting %s v%s", self.settings.app_name, self.settings.app_version)
        await self.database.connect()
        await self.redis_backend.connect()

    async def stop(self) -> None:
        """Drain the database pool within the grace period, then close Redis"""
        await self.database.close(self.settings.shutdown_grace_period)
        await self.redis_backend.close()
        logger.info("Shutdown complete")

    async def readiness(self) -> dict[str, Any]:
        """
        Aggregate health of both backends.

        Ready iff the database is healthy; an unhealthy cache only degrades
        performance and is reported without affecting readiness.
        """
        database = await self.database.health_check()
        cache = await self.redis_backend.health_check()
        return {
            "ready": database["healthy"],
            "checks": {"database": database, "cache": cache},
        }

    @classmethod
    @asynccontextmanager
    async def lifespan(cls, settings: Settings | None = None, **handles: Any) -> AsyncIterator[AppContext]:
        """
        Usage:
            async with AppContext.lifespan() as context:
                await context.work_items.find_unassigned()
        """
        context = cls(settings, **handles)
        await context.start()
        try:
            yield context
        finally:
            await context.stop()
