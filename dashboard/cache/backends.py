"""
Concrete cache store adapters.

RedisCacheStore speaks the redis protocol through ``redis.asyncio`` and
supports every capability. RestCacheStore speaks the Upstash-style REST
protocol through ``httpx``: one JSON command array per request, no key
scanning and no sorted sets.
"""

import logging
from typing import Any, Optional

import httpx
from redis.asyncio import Redis

from dashboard.cache.store import (
    BackendKind,
    CacheBackendError,
    CacheStore,
    Capability,
    UnsupportedCapability,
)

logger = logging.getLogger(__name__)

_WILDCARDS = ("*", "?", "[")


def has_wildcard(pattern: str) -> bool:
    return any(char in pattern for char in _WILDCARDS)


class RedisCacheStore(CacheStore):
    kind = BackendKind.FULL
    capabilities = (
        Capability.PATTERN_DELETE
        | Capability.COUNTER
        | Capability.EXPIRE
        | Capability.SORTED_SET
    )

    def __init__(self, redis: Redis):
        self.redis = redis

    @classmethod
    def from_url(cls, url: str, pool_size: int = 5, timeout: float = 5.0):
        redis = Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=pool_size,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
            socket_keepalive=True,
            health_check_interval=30,
        )
        return cls(redis)

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str) -> bool:
        return bool(await self.redis.set(key, value))

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool:
        return bool(await self.redis.set(key, value, ex=ttl_seconds))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.redis.delete(*keys))

    async def delete_by_pattern(self, pattern: str) -> int:
        if not has_wildcard(pattern):
            return await self.delete(pattern)

        cursor = 0
        deleted_count = 0
        while True:
            cursor, keys = await self.redis.scan(cursor, match=pattern, count=100)
            if keys:
                deleted_count += int(await self.redis.delete(*keys))
            if cursor == 0:
                break

        logger.debug(f"Pattern delete {pattern!r} removed {deleted_count} keys")
        return deleted_count

    async def increment(self, key: str) -> int:
        return int(await self.redis.incr(key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self.redis.expire(key, ttl_seconds))

    async def time_to_live(self, key: str) -> int:
        return int(await self.redis.ttl(key))

    async def add_to_window(self, key: str, score: int, member: str) -> None:
        await self.redis.zadd(key, {member: score})

    async def prune_window(self, key: str, min_score: int) -> int:
        # exclusive upper bound: members scored exactly at min_score survive
        return int(await self.redis.zremrangebyscore(key, "-inf", f"({min_score}"))

    async def count_window(self, key: str) -> int:
        return int(await self.redis.zcard(key))

    async def oldest_in_window(self, key: str) -> Optional[int]:
        oldest = await self.redis.zrange(key, 0, 0, withscores=True)
        if not oldest:
            return None
        _, score = oldest[0]
        return int(score)

    async def prune_and_count_window(self, key: str, min_score: int) -> int:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", f"({min_score}")
            pipe.zcard(key)
            _, count = await pipe.execute()
        return int(count)

    async def close(self) -> None:
        await self.redis.aclose()


class RestCacheStore(CacheStore):
    kind = BackendKind.RESTRICTED
    capabilities = Capability.COUNTER | Capability.EXPIRE

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, token: str, timeout: float = 5.0):
        client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )
        return cls(client)

    async def _command(self, *args: Any) -> Any:
        response = await self.client.post("/", json=[str(arg) for arg in args])
        try:
            payload = response.json()
        except ValueError:
            response.raise_for_status()
            raise CacheBackendError(f"Malformed response to {args[0]}")

        if isinstance(payload, dict) and payload.get("error"):
            raise CacheBackendError(f"{args[0]} failed: {payload['error']}")
        response.raise_for_status()
        return payload.get("result") if isinstance(payload, dict) else None

    async def ping(self) -> bool:
        return await self._command("PING") == "PONG"

    async def get(self, key: str) -> Optional[str]:
        result = await self._command("GET", key)
        return None if result is None else str(result)

    async def set(self, key: str, value: str) -> bool:
        return await self._command("SET", key, value) == "OK"

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool:
        return await self._command("SET", key, value, "EX", ttl_seconds) == "OK"

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._command("DEL", *keys))

    async def delete_by_pattern(self, pattern: str) -> int:
        # Exact keys only; the REST API has no key scan.
        if has_wildcard(pattern):
            raise UnsupportedCapability(self.kind.value, Capability.PATTERN_DELETE)
        return await self.delete(pattern)

    async def increment(self, key: str) -> int:
        return int(await self._command("INCR", key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return int(await self._command("EXPIRE", key, ttl_seconds)) == 1

    async def time_to_live(self, key: str) -> int:
        return int(await self._command("TTL", key))

    async def close(self) -> None:
        await self.client.aclose()
