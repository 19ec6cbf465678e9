"""Process-local TTL cache for embedding vectors.

Wraps ``cachetools.TTLCache`` and adds per-entry expiry so that callers
may ask for a shorter lifetime than the provider default.
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from cachetools import TTLCache

from ragkit.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    ``TTLCache`` applies one TTL to every entry, so each value is stored
    alongside its own expiry and a per-item *ttl* shorter than the default
    is honoured on read.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds for cache entries.
    """

    def __init__(self, max_size: int = 10_000, ttl: int = 3600) -> None:
        self._default_ttl = ttl
        self._cache: TTLCache[str, tuple[float, Any]] = TTLCache(maxsize=max_size, ttl=ttl)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the live value for *key*; expired entries are dropped on read."""
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._cache.pop(key, None)
            logger.debug("cache_expired", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        # The backing TTLCache still evicts at the default TTL, so a per-item
        # ttl can only shorten an entry's life.
        effective_ttl = min(ttl, self._default_ttl) if ttl is not None else self._default_ttl
        self._cache[key] = (time.monotonic() + effective_ttl, value)
        logger.debug("cache_set", key=key, ttl=effective_ttl)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        self._cache.clear()
        logger.debug("cache_cleared")

    def size(self) -> int:
        return len(self._cache)
