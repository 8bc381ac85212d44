"""Shared fixtures: an in-memory store with a controllable clock, and an API client."""

import fnmatch
import math
from typing import Optional

import pytest
import pytest_asyncio
from cachetools import TLRUCache
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from dashboard.cache.backends import has_wildcard
from dashboard.cache.provider import cache_provider
from dashboard.cache.store import (
    BackendKind,
    CacheStore,
    Capability,
    DisabledCacheStore,
    UnsupportedCapability,
)

FULL = Capability.PATTERN_DELETE | Capability.COUNTER | Capability.EXPIRE | Capability.SORTED_SET
RESTRICTED = Capability.COUNTER | Capability.EXPIRE


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def seconds(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def _expires_at(key, item, now):
    _, expires_at = item
    return float("inf") if expires_at is None else expires_at


class MemoryCacheStore(CacheStore):
    """In-process store honouring per-key TTLs against a fake clock."""

    def __init__(self, clock: FakeClock, capabilities: Capability = FULL):
        self.clock = clock
        self.capabilities = capabilities
        self.kind = BackendKind.FULL if Capability.SORTED_SET in capabilities else BackendKind.RESTRICTED
        self.data = TLRUCache(maxsize=10_000, ttu=_expires_at, timer=clock.seconds)
        self.deleted: list[str] = []
        self.failing = False

    def _check(self):
        if self.failing:
            raise RedisConnectionError("connection refused")

    def _get(self, key):
        item = self.data.get(key)
        return None if item is None else item[0]

    def _put(self, key, value, ttl_seconds: Optional[int] = None):
        expires_at = None if ttl_seconds is None else self.clock.seconds() + ttl_seconds
        self.data[key] = (value, expires_at)

    async def get(self, key):
        self._check()
        return self._get(key)

    async def set(self, key, value):
        self._check()
        self._put(key, value)
        return True

    async def set_with_ttl(self, key, value, ttl_seconds):
        self._check()
        self._put(key, value, ttl_seconds)
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self.deleted.append(key)
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def delete_by_pattern(self, pattern):
        self._check()
        if not has_wildcard(pattern):
            return await self.delete(pattern)
        if not self.supports(Capability.PATTERN_DELETE):
            raise UnsupportedCapability(self.kind.value, Capability.PATTERN_DELETE)
        matches = [key for key in list(self.data.keys()) if fnmatch.fnmatchcase(key, pattern)]
        return await self.delete(*matches)

    async def increment(self, key):
        self._check()
        self._require(Capability.COUNTER)
        item = self.data.get(key)
        count = int(item[0]) + 1 if item else 1
        self.data[key] = (str(count), item[1] if item else None)
        return count

    async def expire(self, key, ttl_seconds):
        self._check()
        self._require(Capability.EXPIRE)
        item = self.data.get(key)
        if item is None:
            return False
        self._put(key, item[0], ttl_seconds)
        return True

    async def time_to_live(self, key):
        self._check()
        self._require(Capability.EXPIRE)
        item = self.data.get(key)
        if item is None:
            return -2
        if item[1] is None:
            return -1
        return math.ceil(item[1] - self.clock.seconds())

    async def add_to_window(self, key, score, member):
        self._check()
        self._require(Capability.SORTED_SET)
        item = self.data.get(key)
        window = dict(item[0]) if item else {}
        window[member] = score
        self.data[key] = (window, item[1] if item else None)

    async def prune_window(self, key, min_score):
        self._check()
        self._require(Capability.SORTED_SET)
        item = self.data.get(key)
        if not item:
            return 0
        window = {m: s for m, s in item[0].items() if s >= min_score}
        self.data[key] = (window, item[1])
        return len(item[0]) - len(window)

    async def count_window(self, key):
        self._check()
        window = self._get(key) or {}
        return len(window)

    async def oldest_in_window(self, key):
        self._check()
        window = self._get(key) or {}
        return min(window.values()) if window else None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryCacheStore(clock)


@pytest.fixture
def restricted_store(clock):
    return MemoryCacheStore(clock, capabilities=RESTRICTED)


@pytest.fixture(autouse=True)
def disabled_cache():
    """Every test starts without a backend unless it installs one."""
    cache_provider.override(DisabledCacheStore())
    yield
    cache_provider.override(DisabledCacheStore())


@pytest.fixture
def use_store():
    def install(store: CacheStore) -> CacheStore:
        cache_provider.override(store)
        return store

    return install


@pytest_asyncio.fixture
async def db_engine():
    from sqlmodel import SQLModel

    from dashboard.database import make_engine

    engine = make_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    from dashboard.database import make_session_factory

    return make_session_factory(db_engine)


@pytest_asyncio.fixture
async def client(session_factory):
    from dashboard.database import get_db
    from dashboard.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from dashboard.auth import create_access_token
    from dashboard.core.config import get_settings

    def make(user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, get_settings())}"}

    return make
