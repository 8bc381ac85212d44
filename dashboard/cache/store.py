"""
Cache store contract shared by every backend.

A backend declares its optional capabilities once, at construction time,
through a ``Capability`` flag set. Callers check ``store.supports(...)``
before using an optional operation and fall back to a degraded algorithm
otherwise.
"""

import enum
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from redis.exceptions import RedisError


class CacheError(Exception):
    """Base class for errors raised by the cache subsystem."""


class CacheBackendError(CacheError):
    """The backend answered, but reported a failed command."""


class UnsupportedCapability(CacheError):
    """An optional operation was called on a backend that lacks it."""

    def __init__(self, backend: str, capability: "Capability"):
        super().__init__(f"{backend} backend does not support {capability.name}")
        self.backend = backend
        self.capability = capability


# Errors a store call may raise at runtime; the core catches these and fails open.
STORE_ERRORS = (RedisError, httpx.HTTPError, CacheBackendError, OSError)


class Capability(enum.Flag):
    NONE = 0
    PATTERN_DELETE = enum.auto()
    COUNTER = enum.auto()
    EXPIRE = enum.auto()
    SORTED_SET = enum.auto()


class BackendKind(str, enum.Enum):
    DISABLED = "disabled"
    RESTRICTED = "restricted"
    FULL = "full"


class CacheStore(ABC):
    kind: BackendKind
    capabilities: Capability = Capability.NONE

    @property
    def enabled(self) -> bool:
        return self.kind is not BackendKind.DISABLED

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _require(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise UnsupportedCapability(self.kind.value, capability)

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> bool: ...

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    @abstractmethod
    async def delete(self, *keys: str) -> int: ...

    async def delete_by_pattern(self, pattern: str) -> int:
        self._require(Capability.PATTERN_DELETE)
        raise NotImplementedError

    async def increment(self, key: str) -> int:
        self._require(Capability.COUNTER)
        raise NotImplementedError

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        self._require(Capability.EXPIRE)
        raise NotImplementedError

    async def time_to_live(self, key: str) -> int:
        """Seconds until ``key`` expires; -1 without expiry, -2 if absent."""
        self._require(Capability.EXPIRE)
        raise NotImplementedError

    async def add_to_window(self, key: str, score: int, member: str) -> None:
        self._require(Capability.SORTED_SET)
        raise NotImplementedError

    async def prune_window(self, key: str, min_score: int) -> int:
        self._require(Capability.SORTED_SET)
        raise NotImplementedError

    async def count_window(self, key: str) -> int:
        self._require(Capability.SORTED_SET)
        raise NotImplementedError

    async def oldest_in_window(self, key: str) -> Optional[int]:
        """Score of the oldest member of a window, or None if it is empty."""
        self._require(Capability.SORTED_SET)
        raise NotImplementedError

    async def prune_and_count_window(self, key: str, min_score: int) -> int:
        """Prune then count; backends override this with a single round trip."""
        await self.prune_window(key, min_score)
        return await self.count_window(key)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class DisabledCacheStore(CacheStore):
    """
    Stand-in used when no backend is configured.

    Every operation is a no-op that reports "not performed": reads are
    absent, writes return False and deletes remove nothing.
    """

    kind = BackendKind.DISABLED

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str) -> bool:
        return False

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool:
        return False

    async def delete(self, *keys: str) -> int:
        return 0

    async def delete_by_pattern(self, pattern: str) -> int:
        return 0
