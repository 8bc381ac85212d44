import logging
from typing import Optional

from dashboard.cache.provider import cache_provider
from dashboard.cache.store import STORE_ERRORS

logger = logging.getLogger(__name__)


def session_key(token: str) -> str:
    return f"session:{token}"


async def cache_session(token: str, user_id: int, ttl: int = 3600) -> bool:
    """Remember token -> user id. Returns whether the entry was written."""
    store = await cache_provider.get_store()
    if not store.enabled:
        return False

    try:
        return await store.set_with_ttl(session_key(token), str(user_id), ttl)
    except STORE_ERRORS as e:
        logger.error(f"Session cache error: {e}")
        return False


async def get_cached_session(token: str) -> Optional[int]:
    """
    Look up the user id cached for a token.

    None means "unknown", never "unauthenticated": callers must verify the
    token itself on a miss.
    """
    store = await cache_provider.get_store()
    if not store.enabled:
        return None

    try:
        raw = await store.get(session_key(token))
    except STORE_ERRORS as e:
        logger.error(f"Session retrieval error: {e}")
        return None

    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Discarding malformed session cache entry")
        return None


async def invalidate_session(token: str) -> int:
    store = await cache_provider.get_store()
    if not store.enabled:
        return 0

    try:
        return await store.delete(session_key(token))
    except STORE_ERRORS as e:
        logger.error(f"Session invalidation error: {e}")
        return 0
