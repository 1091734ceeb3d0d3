"""Shared test fixtures for pytest"""
import fnmatch
import time

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from taskboard.application.services import SubjectService, WorkItemService
from taskboard.infrastructure.cache.invalidation import CacheInvalidator
from taskboard.infrastructure.cache.redis_cache import CacheService
from taskboard.infrastructure.cache.redis_client import RedisBackend
from taskboard.infrastructure.config.settings import Settings
from taskboard.infrastructure.persistence.database import Database

# One in-memory SQLite database per engine; StaticPool keeps it on a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client (decoded string values with TTLs)"""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.closed = False

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.store.pop(key, None)
            self.expiry.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        self._purge(key)
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.store[key] = value
        self.expiry[key] = time.monotonic() + ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            self._purge(key)
            if self.store.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def scan_iter(self, match: str | None = None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def exists(self, *keys: str) -> int:
        found = 0
        for key in keys:
            self._purge(key)
            if key in self.store:
                found += 1
        return found

    async def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self.store:
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return round(deadline - time.monotonic())

    async def incrby(self, key: str, amount: int) -> int:
        value = int(self.store.get(key, "0")) + amount
        self.store[key] = str(value)
        return value

    async def decrby(self, key: str, amount: int) -> int:
        return await self.incrby(key, -amount)

    async def flushdb(self) -> bool:
        self.store.clear()
        self.expiry.clear()
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings():
    """Settings pointing at in-memory SQLite with fast retries and shutdown"""
    return Settings(
        database_url=TEST_DATABASE_URL,
        environment="test",
        database_connect_retries=1,
        redis_connect_retries=1,
        shutdown_grace_period=0.5,
    )


@pytest.fixture
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLite ignores ON DELETE rules unless foreign keys are switched on per connection
    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    yield engine
    await engine.dispose()


@pytest.fixture
async def database(settings, test_engine):
    """Connected Database handle with a fresh schema"""
    db = Database(settings, engine=test_engine)
    await db.connect()
    await db.create_schema()
    yield db
    await db.drop_schema()


@pytest.fixture
async def test_db(database):
    """Create test database session"""
    async with database.session() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def redis_backend(settings, fake_redis):
    """Redis backend connected to the in-memory fake"""
    backend = RedisBackend(settings, redis_client=fake_redis)
    await backend.connect()
    return backend


@pytest.fixture
def cache(redis_backend, settings):
    return CacheService(redis_backend, settings)


@pytest.fixture
def invalidator(cache):
    return CacheInvalidator(cache)


@pytest.fixture
def subject_service(database, cache, invalidator):
    return SubjectService(database, cache, invalidator)


@pytest.fixture
def work_item_service(database, cache, invalidator):
    return WorkItemService(database, cache, invalidator)
