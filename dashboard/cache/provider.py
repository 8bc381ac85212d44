import asyncio
import logging
from typing import Optional

from dashboard.cache.backends import RedisCacheStore, RestCacheStore
from dashboard.cache.store import (
    STORE_ERRORS,
    CacheBackendError,
    CacheStore,
    DisabledCacheStore,
)
from dashboard.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> CacheStore:
    """Pick the backend: full if configured, else restricted, else disabled."""
    if settings.has_redis:
        return RedisCacheStore.from_url(
            settings.redis_url,
            pool_size=settings.redis_pool_size,
            timeout=settings.cache_timeout_seconds,
        )
    if settings.has_rest:
        return RestCacheStore.from_credentials(
            settings.upstash_redis_rest_url,
            settings.upstash_redis_rest_token,
            timeout=settings.cache_timeout_seconds,
        )
    return DisabledCacheStore()


class CacheProvider:
    """
    Resolves the active cache store once per process.

    The first caller builds and pings the store under a lock; every later
    caller takes the lock-free fast path and gets the same instance. A store
    that cannot be reached at startup is replaced by the disabled store, so
    connection setup is never retried inline with request handling.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings
        self._store: CacheStore | None = None
        self._lock: asyncio.Lock | None = None

    async def get_store(self) -> CacheStore:
        store = self._store
        if store is not None:
            return store

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._store is None:
                self._store = await self._resolve()
        return self._store

    async def _resolve(self) -> CacheStore:
        settings = self._settings or get_settings()
        store = build_store(settings)

        if not store.enabled:
            logger.warning("Cache backend not configured - caching disabled")
            return store

        try:
            if not await store.ping():
                raise CacheBackendError("unexpected PING reply")
            logger.info(f"Cache backend connected ({store.kind.value})")
            return store
        except STORE_ERRORS as e:
            logger.error(f"Cache backend unreachable, caching disabled: {e}")
            try:
                await store.close()
            except STORE_ERRORS as close_error:
                logger.debug(f"Closing unreachable backend failed: {close_error}")
            return DisabledCacheStore()

    def override(self, store: CacheStore) -> None:
        """Install a specific store (used by tests and custom wiring)."""
        self._store = store

    async def close(self) -> None:
        """Graceful shutdown of the backend client."""
        if self._store is None:
            return
        try:
            await self._store.close()
            logger.info("Cache backend closed")
        except STORE_ERRORS as e:
            logger.error(f"Error closing cache backend: {e}")
        finally:
            self._store = None


# Cache provider instance (singleton per worker)
cache_provider = CacheProvider()
