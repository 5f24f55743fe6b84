"""
Short-lived caches for reads that may be served slightly stale.

Two cachetools.TTLCache pools:
  auth    sha256(access token) -> AuthUser   (60s, revoked sessions age out fast)
  plans   active plan catalogue              (10 min)

Payment and subscription rows are never cached: settlement must always
see the store's current state.
"""
import threading
from typing import Any, Callable, Dict, Hashable, Optional

from cachetools import TTLCache

AUTH_POOL = "auth"
PLANS_POOL = "plans"

_lock = threading.Lock()

_pools: Dict[str, TTLCache] = {
    AUTH_POOL: TTLCache(maxsize=512, ttl=60),
    PLANS_POOL: TTLCache(maxsize=32, ttl=600),
}


def _pool(name: str) -> TTLCache:
    if name not in _pools:
        raise KeyError(f"Unknown cache pool: {name}")
    return _pools[name]


def cache_get(pool: str, key: Hashable) -> Optional[Any]:
    with _lock:
        return _pool(pool).get(key)


def cache_set(pool: str, key: Hashable, value: Any) -> None:
    with _lock:
        _pool(pool)[key] = value


def cached(pool: str, key: Hashable, loader: Callable[[], Any]) -> Any:
    """
    Cached value for key, calling loader() on a miss.

    The loader runs outside the lock. A None result is returned but not
    stored, so a failed lookup is retried on the next call.
    """
    value = cache_get(pool, key)
    if value is not None:
        return value

    value = loader()
    if value is not None:
        cache_set(pool, key, value)
    return value


def cache_invalidate(pool: str) -> None:
    """Drop every entry in a pool."""
    with _lock:
        _pool(pool).clear()
