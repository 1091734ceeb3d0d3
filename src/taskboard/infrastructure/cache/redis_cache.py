"""Fail-soft Redis cache used for cache-aside reads of subjects and work items"""
from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from redis.asyncio import Redis

from taskboard.infrastructure.cache.redis_client import RedisBackend
from taskboard.infrastructure.config.settings import Settings, get_settings
from taskboard.shared.telemetry.tracing import add_span_attributes

logger = logging.getLogger(__name__)

T = TypeVar("T")


def encode(value: Any) -> str:
    """Canonical JSON encoding used for every cached value"""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class CacheService:
    """
    Advisory cache in front of the store.

    No method raises a backend error: reads degrade to a miss and writes or
    deletes report failure through their return value. Cached values are
    only ever deleted by mutations, never rewritten in place.
    """

    def __init__(self, backend: RedisBackend, settings: Settings | None = None):
        self.backend = backend
        self.settings = settings or get_settings()
        self.default_ttl = self.settings.cache_ttl_default

    def is_available(self) -> bool:
        return self.backend.is_available()

    async def _guarded(self, action: str, target: str, fallback: Any, call: Callable[[Redis], Awaitable[Any]]) -> Any:
        """Run call against the live client, or return fallback when Redis is absent or fails"""
        client = self.backend.client
        if client is None:
            return fallback
        try:
            return await call(client)
        except Exception as e:
            logger.error(f"Cache {action} failed for {target}: {e}")
            return fallback

    async def get(self, key: str) -> Any | None:
        """Decoded value under key, or None on a miss or any cache error"""

        async def read(client: Redis) -> Any | None:
            raw = await client.get(key)
            logger.debug(f"Cache {'MISS' if raw is None else 'HIT'}: {key}")
            return None if raw is None else json.loads(raw)

        return await self._guarded("read", key, None, read)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value as canonical JSON; ttl falls back to cache_ttl_default"""
        ttl = ttl if ttl is not None else self.default_ttl

        async def write(client: Redis) -> bool:
            await client.setex(key, ttl, encode(value))
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True

        return await self._guarded("write", key, False, write)

    async def delete(self, key: str) -> bool:
        async def remove(client: Redis) -> bool:
            return bool(await client.delete(key))

        return await self._guarded("delete", key, False, remove)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob such as "owner_items:abc123:*"

        SCAN then DELETE, so the sweep is not atomic: a key written while the
        scan is running may survive it and live until its TTL expires.
        """

        async def sweep(client: Redis) -> int:
            removed = 0
            async for key in client.scan_iter(match=pattern):
                removed += await client.delete(key)
            if removed:
                logger.info(f"Cache INVALIDATE: {pattern} ({removed} keys)")
            return removed

        return await self._guarded("pattern delete", pattern, 0, sweep)

    async def exists(self, key: str) -> bool:
        async def check(client: Redis) -> bool:
            return await client.exists(key) == 1

        return await self._guarded("exists", key, False, check)

    async def ttl(self, key: str) -> int:
        """Remaining seconds with Redis semantics (-1 no expiry, -2 missing); -2 when unavailable"""

        async def remaining(client: Redis) -> int:
            return await client.ttl(key)

        return await self._guarded("ttl", key, -2, remaining)

    async def increment(self, key: str, amount: int = 1) -> int | None:
        async def incr(client: Redis) -> int:
            return await client.incrby(key, amount)

        return await self._guarded("increment", key, None, incr)

    async def decrement(self, key: str, amount: int = 1) -> int | None:
        async def decr(client: Redis) -> int:
            return await client.decrby(key, amount)

        return await self._guarded("decrement", key, None, decr)

    async def clear_all(self) -> bool:
        """Flush the Redis database; refused in production"""
        if self.settings.is_production:
            logger.warning("Cache flush is disabled in production")
            return False

        async def flush(client: Redis) -> bool:
            await client.flushdb()
            logger.warning("Cache flushed")
            return True

        return await self._guarded("flush", "*", False, flush)

    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """
        Cache-aside read

        On a hit the producer is not called. On a miss, or when the cache
        cannot be read, the producer's result is returned and written back
        (None results are not cached). A failed write-back never changes the
        returned value; producer exceptions propagate unchanged.

        Example:
            payload = await cache.get_or_set(
                CacheKeys.subject(subject_id), load_subject, ttl=CacheTTL.LONG
            )
        """
        cached = await self.get(key)
        add_span_attributes(cache_hit=cached is not None, cache_key=key)
        if cached is not None:
            return cached

        result = await producer()
        if result is not None:
            await self.set(key, result, ttl=ttl)
        return result
