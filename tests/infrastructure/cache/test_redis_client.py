"""Tests for the Redis backend lifecycle"""
from unittest.mock import AsyncMock, patch

import pytest
import redis.asyncio as redis

from taskboard.domain.exceptions import BackendUnavailableException
from taskboard.infrastructure.cache.redis_client import RedisBackend
from taskboard.infrastructure.config.settings import Settings


def _settings(**overrides) -> Settings:
    return Settings(database_url="sqlite+aiosqlite://", environment="test", **overrides)


@pytest.mark.asyncio
async def test_connect_success(redis_backend, fake_redis):
    assert redis_backend.is_available() is True
    assert redis_backend.client is fake_redis


@pytest.mark.asyncio
async def test_connect_disabled_builds_no_client():
    backend = RedisBackend(_settings(redis_enabled=False))

    assert await backend.connect() is False
    assert backend.redis is None
    assert backend.client is None


@pytest.mark.asyncio
async def test_connect_retries_with_exponential_backoff():
    """
    GIVEN a Redis server that refuses every ping
    WHEN connect is called with three attempts
    THEN it waits 2s then 4s between attempts and gives up without raising
    """
    client = AsyncMock()
    client.ping = AsyncMock(side_effect=redis.ConnectionError("connection refused"))
    backend = RedisBackend(_settings(), redis_client=client)

    with patch("taskboard.infrastructure.cache.redis_client.asyncio.sleep", new=AsyncMock()) as sleep:
        connected = await backend.connect(max_retries=3)

    assert connected is False
    assert client.ping.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [2, 4]
    assert backend.is_available() is False
    # Injected clients belong to the caller and are left open
    client.aclose.assert_not_called()


@pytest.mark.asyncio
async def test_connect_recovers_on_later_attempt():
    client = AsyncMock()
    client.ping = AsyncMock(side_effect=[redis.ConnectionError("not yet"), True])
    backend = RedisBackend(_settings(), redis_client=client)

    with patch("taskboard.infrastructure.cache.redis_client.asyncio.sleep", new=AsyncMock()):
        assert await backend.connect(max_retries=3) is True

    assert backend.is_available() is True


@pytest.mark.asyncio
async def test_connect_failure_raises_when_required():
    client = AsyncMock()
    client.ping = AsyncMock(side_effect=redis.ConnectionError("connection refused"))
    backend = RedisBackend(_settings(redis_required=True), redis_client=client)

    with pytest.raises(BackendUnavailableException) as exc_info:
        await backend.connect(max_retries=1)

    assert exc_info.value.retryable is True
    assert exc_info.value.to_dict()["error"] == "BACKEND_UNAVAILABLE"


@pytest.mark.asyncio
async def test_health_check(redis_backend):
    health = await redis_backend.health_check()

    assert health["healthy"] is True
    assert health["details"]["port"] == redis_backend.settings.redis_port


@pytest.mark.asyncio
async def test_health_check_reports_ping_failure(settings):
    client = AsyncMock()
    backend = RedisBackend(settings, redis_client=client)
    await backend.connect()
    client.ping = AsyncMock(side_effect=redis.ConnectionError("gone"))

    health = await backend.health_check()

    assert health["healthy"] is False
    assert "gone" in health["details"]["error"]


@pytest.mark.asyncio
async def test_health_check_before_connect(settings):
    health = await RedisBackend(settings).health_check()

    assert health["healthy"] is False


@pytest.mark.asyncio
async def test_close(redis_backend, fake_redis):
    await redis_backend.close()

    assert fake_redis.closed is True
    assert redis_backend.is_available() is False
