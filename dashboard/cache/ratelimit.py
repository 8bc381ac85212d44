"""
Rate limiting over the active cache store.

With sorted-set support the limiter keeps a true sliding window of request
timestamps per identifier. Without it the limiter falls back to a
fixed-window counter whose window starts at the first request and ends when
the key expires; ``reset_at`` is then only an upper bound anchored to now.

Both variants fail open: no backend, or any backend error, admits the
request.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from dashboard.cache.provider import cache_provider
from dashboard.cache.store import STORE_ERRORS, CacheStore, Capability

logger = logging.getLogger(__name__)


def _now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch millis
    limit: int

    def retry_after_seconds(self, now_ms: Optional[int] = None) -> int:
        now_ms = _now_millis() if now_ms is None else now_ms
        return max(0, math.ceil((self.reset_at - now_ms) / 1000))


def rate_limit_key(identifier: str) -> str:
    return f"ratelimit:{identifier}"


def _window_seconds(window_ms: int) -> int:
    return max(1, math.ceil(window_ms / 1000))


class RateLimiter:
    def __init__(self, provider=cache_provider, clock: Callable[[], int] = _now_millis):
        self.provider = provider
        self.clock = clock

    async def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        now = self.clock()
        store = await self.provider.get_store()

        if not store.enabled:
            return RateLimitResult(True, limit, now + window_ms, limit)

        try:
            if store.supports(Capability.SORTED_SET):
                return await self._sliding_window(store, identifier, limit, window_ms, now)
            return await self._fixed_window(store, identifier, limit, window_ms, now)
        except STORE_ERRORS as e:
            logger.error(f"Rate limit error for {identifier}, allowing request: {e}")
            return RateLimitResult(True, limit, now + window_ms, limit)

    async def _sliding_window(
        self, store: CacheStore, identifier: str, limit: int, window_ms: int, now: int
    ) -> RateLimitResult:
        key = rate_limit_key(identifier)
        count = await store.prune_and_count_window(key, now - window_ms)

        if count >= limit:
            oldest = await store.oldest_in_window(key)
            reset_at = oldest + window_ms if oldest is not None else now + window_ms
            logger.info(f"Rate limit exceeded for {identifier} ({count}/{limit})")
            return RateLimitResult(False, 0, reset_at, limit)

        # random suffix keeps two requests in the same millisecond distinct
        await store.add_to_window(key, now, f"{now}-{uuid.uuid4().hex}")
        await store.expire(key, _window_seconds(window_ms))
        return RateLimitResult(True, limit - count - 1, now + window_ms, limit)

    async def _fixed_window(
        self, store: CacheStore, identifier: str, limit: int, window_ms: int, now: int
    ) -> RateLimitResult:
        key = rate_limit_key(identifier)
        count = await store.increment(key)

        # first hit opens the window; the key's expiry closes it
        if count == 1:
            await self._open_window(store, key, window_ms)
        elif count > limit and await store.time_to_live(key) == -1:
            # counter survived a failed first-hit EXPIRE and would never reset
            logger.warning(f"Rate limit counter {key} has no expiry, restoring it")
            await self._open_window(store, key, window_ms)

        allowed = count <= limit
        if not allowed:
            logger.info(f"Rate limit exceeded for {identifier} ({count}/{limit})")
        return RateLimitResult(allowed, max(0, limit - count), now + window_ms, limit)

    async def _open_window(self, store: CacheStore, key: str, window_ms: int) -> None:
        try:
            await store.expire(key, _window_seconds(window_ms))
        except STORE_ERRORS as e:
            logger.warning(f"Failed to set expiry on {key}, counter left without TTL: {e}")


rate_limiter = RateLimiter()


async def rate_limit(identifier: str, limit: int = 10, window_ms: int = 60_000) -> RateLimitResult:
    return await rate_limiter.check(identifier, limit, window_ms)
