"""Cache backend handle: owns the redis.asyncio client and its lifecycle"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as redis

from taskboard.domain.exceptions import BackendUnavailableException
from taskboard.infrastructure.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

REDIS_CONNECTIVITY_ERRORS: tuple[type[BaseException], ...] = (
    redis.ConnectionError,
    redis.TimeoutError,
    OSError,
)


class RedisBackend:
    """
    Connection to the key/TTL store backing CacheService.

    A failed connect leaves the backend unavailable rather than failing
    startup (the cache is advisory), unless settings.redis_required is set.
    """

    def __init__(self, settings: Settings | None = None, redis_client: redis.Redis | None = None):
        """
        Initialize cache backend

        Args:
            settings: Application settings (defaults to get_settings())
            redis_client: Optional Redis client (for testing/DI)
        """
        self.settings = settings or get_settings()
        self.redis = redis_client
        self._owns_client = redis_client is None
        self._connected = False

    def _build_client(self) -> redis.Redis:
        return redis.Redis(
            host=self.settings.redis_host,
            port=self.settings.redis_port,
            db=self.settings.redis_db,
            password=self.settings.redis_password if self.settings.redis_password else None,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            max_connections=self.settings.redis_max_connections,
        )

    def is_available(self) -> bool:
        """Check if Redis is connected and available"""
        return self._connected and self.redis is not None

    @property
    def client(self) -> redis.Redis | None:
        return self.redis if self.is_available() else None

    async def connect(self, max_retries: int | None = None) -> bool:
        """
        Establish Redis connection (call on app startup)

        Retries with exponential backoff (2s, 4s, ...). Returns whether the
        cache is usable.

        Raises:
            BackendUnavailableException: only when redis_required is set
        """
        if not self.settings.redis_enabled and self._owns_client:
            logger.info("Redis cache disabled in configuration")
            return False

        retries = max(max_retries if max_retries is not None else self.settings.redis_connect_retries, 1)
        last_error: BaseException | None = None

        for attempt in range(1, retries + 1):
            try:
                if self.redis is None:
                    self.redis = self._build_client()
                await self.redis.ping()
                self._connected = True
                logger.info(
                    f"Redis cache connected: {self.settings.redis_host}:{self.settings.redis_port}"
                )
                return True
            except REDIS_CONNECTIVITY_ERRORS as e:
                last_error = e
                logger.warning(f"Redis connection attempt {attempt}/{retries} failed: {e}")
                if attempt < retries:
                    await asyncio.sleep(2**attempt)

        self._connected = False
        if self._owns_client and self.redis is not None:
            await self.redis.aclose()
            self.redis = None

        if self.settings.redis_required:
            raise BackendUnavailableException(
                "redis", f"connection failed after {retries} attempts: {last_error}"
            )
        logger.warning(
            f"Redis connection failed: {last_error}. Cache disabled - falling back to database queries."
        )
        return False

    async def health_check(self) -> dict[str, Any]:
        """Ping Redis and report the outcome; never raises"""
        if not self.is_available() or self.redis is None:
            return {"healthy": False, "message": "Redis not initialized", "details": {}}

        try:
            pong = await self.redis.ping()
        except Exception as e:
            return {
                "healthy": False,
                "message": "Redis health check failed",
                "details": {"error": str(e)},
            }

        if not pong:
            return {"healthy": False, "message": "Redis ping failed", "details": {}}
        return {
            "healthy": True,
            "message": "Redis connection is healthy",
            "details": {
                "host": self.settings.redis_host,
                "port": self.settings.redis_port,
                "db": self.settings.redis_db,
            },
        }

    async def close(self) -> None:
        """Close Redis connection (call on app shutdown)"""
        if self.redis is None:
            return
        try:
            await self.redis.aclose()
            logger.info("Redis cache disconnected")
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            self._connected = False
