import json
import logging
from typing import Any, Awaitable, Callable, Optional

from dashboard.cache.provider import cache_provider
from dashboard.cache.store import STORE_ERRORS, UnsupportedCapability
from dashboard.core.config import get_settings

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class CacheLayer:
    """
    Cache-aside access to the active store.

    Strictly fail-open: a missing backend, a store error or an unreadable
    entry all degrade to calling the loader. Nothing raised by the store
    reaches the caller.
    """

    def __init__(self, provider=cache_provider):
        self.provider = provider

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
        }

    def _default_ttl(self) -> int:
        return get_settings().cache_default_ttl_seconds

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        """Deserialize value from storage."""
        return json.loads(raw)

    async def get(
        self,
        key: str,
        loader: Optional[Loader] = None,
        ttl: Optional[int] = None,
    ):
        """
        Retrieve value from the store, falling back to loader.

        Args:
            key: Cache key, used verbatim
            loader: Async function to load value on cache miss
            ttl: TTL in seconds (uses the configured default if None)

        Returns:
            Cached value or loaded value, or None if not found
        """
        store = await self.provider.get_store()

        if not store.enabled:
            return await loader() if loader is not None else None

        try:
            raw = await store.get(key)
            if raw is not None:
                value = self._deserialize(raw)
                self.stats["hits"] += 1
                logger.debug(f"Cache hit {key}")
                return value
        except STORE_ERRORS as e:
            logger.warning(f"Cache GET error for {key}: {e}")
            self.stats["errors"] += 1
        except (TypeError, ValueError) as e:
            logger.warning(f"Unreadable cache entry {key}, treating as miss: {e}")

        self.stats["misses"] += 1
        if loader is None:
            return None

        logger.debug(f"Cache miss {key}, loading from source")
        value = await loader()
        # None is stored as "null", so not-found results are cached too
        await self.set(key, value, ttl)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a value with a TTL. Returns whether the write was performed;
        failures are logged and never raised.
        """
        store = await self.provider.get_store()
        if not store.enabled:
            return False

        try:
            data = self._serialize(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed for {key}: {e}")
            return False

        try:
            return await store.set_with_ttl(key, data, ttl or self._default_ttl())
        except STORE_ERRORS as e:
            logger.warning(f"Failed to cache {key}: {e}")
            self.stats["errors"] += 1
            return False

    async def delete(self, *keys: str) -> int:
        """Delete exact keys. Returns how many existed; 0 when nothing was removed."""
        store = await self.provider.get_store()
        if not store.enabled or not keys:
            return 0

        try:
            removed = await store.delete(*keys)
            logger.debug(f"Deleted {removed} of {len(keys)} keys")
            return removed
        except STORE_ERRORS as e:
            logger.error(f"Cache DELETE error for {keys}: {e}")
            self.stats["errors"] += 1
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a glob pattern.

        On a backend without key scanning only exact keys are deleted;
        wildcard patterns are skipped and left to expire naturally.
        """
        store = await self.provider.get_store()
        if not store.enabled:
            return 0

        try:
            return await store.delete_by_pattern(pattern)
        except UnsupportedCapability:
            logger.debug(f"Skipping wildcard invalidation {pattern} on {store.kind.value} backend")
            return 0
        except STORE_ERRORS as e:
            logger.error(f"Pattern delete error for {pattern}: {e}")
            self.stats["errors"] += 1
            return 0

    def get_stats(self) -> dict:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()


async def cached(key: str, fetcher: Loader, ttl: Optional[int] = None):
    """Get-or-compute-and-store ``key`` through the process cache layer."""
    return await cache_layer.get(key, loader=fetcher, ttl=ttl)
