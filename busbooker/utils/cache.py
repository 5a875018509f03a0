"""TTL cache for slow-moving reference data (companies, cities).

Entries are keyed by (name, scope, args). The scope is the owning service's
``cache_scope``, the API base URL, so two clients pointed at different
backends never share a vocabulary.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Coroutine, Hashable

from cachetools import TTLCache

logger = logging.getLogger(__name__)

_cache: TTLCache = TTLCache(maxsize=64, ttl=600)


def configure_cache(ttl: int) -> None:
    global _cache
    _cache = TTLCache(maxsize=64, ttl=ttl)


def _key(name: str, owner: Any, args: tuple[Any, ...]) -> tuple[Hashable, ...]:
    return (name, getattr(owner, "cache_scope", None), args)


def cached(name: str):
    """Cache an async method's result for the TTL; failures are never stored."""
    def decorator(func: Callable[..., Coroutine[Any, Any, Any]]):
        @functools.wraps(func)
        async def wrapper(owner: Any, *args: Any) -> Any:
            key = _key(name, owner, args)
            if key in _cache:
                logger.debug("Cache hit: %s @ %s", name, key[1])
                return _cache[key]
            result = await func(owner, *args)
            _cache[key] = result
            logger.debug("Cache set: %s @ %s", name, key[1])
            return result
        return wrapper
    return decorator


def invalidate(name: str, scope: Any = None) -> int:
    """Drop every entry for *name* (optionally only within *scope*); returns the count."""
    stale = [k for k in list(_cache) if k[0] == name and (scope is None or k[1] == scope)]
    for key in stale:
        _cache.pop(key, None)
    return len(stale)


def invalidate_all() -> None:
    _cache.clear()
