"""In-process TTL cache for hot lookups (session tokens, users).

Uses cachetools.TTLCache; each process keeps its own entries. Queue data is
never cached here: statistics and positions are recomputed per request.
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not in cache" from a cached falsy value
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache with per-key asyncio locks so concurrent misses query once."""

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            if len(self._locks) >= self._maxsize * 2:
                for k in list(self._locks):
                    if k not in self._cache and not self._locks[k].locked():
                        del self._locks[k]
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def get(self, key: str) -> Any:
        """Return the cached value or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)


def cached(cache: AsyncTTLCache, key_func: Callable[..., str]):
    """Cache the result of an async lookup.

    ``key_func`` receives the decorated function's arguments. ``None``
    results are not stored, so a row created after a miss is seen on the
    next call. Errors propagate uncached.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key_func(*args, **kwargs)

            result = cache.get(cache_key)
            if result is not _MISSING:
                return result

            async with cache._get_lock(cache_key):
                result = cache.get(cache_key)
                if result is not _MISSING:
                    return result

                result = await func(*args, **kwargs)
                if result is not None:
                    cache.set(cache_key, result)
                else:
                    logger.debug("Cache miss not stored for %s", cache_key)
                return result

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
