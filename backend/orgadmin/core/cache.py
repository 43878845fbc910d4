"""
cache.py — In-Memory Cache Utilities

Purpose:
- Provide a simple caching layer for repeated, expensive lookups:
    * Organization-wide statistics (dashboard counters)
- In-process Python dict (non-distributed, non-persistent) with a per-entry
  TTL. Expired entries are dropped lazily on read.

Key Notes:
- Cache keys should be deterministic: use make_key(namespace, identifier).
- Writers that change counted data clear the relevant namespace.

This module does NOT:
- Connect to Redis.
- Store large datasets; keep cache small & targeted.
"""

import time
from typing import Any, Dict, Optional, Tuple

# -----------------------------------------------------------------------------
# Simple In-Memory Cache
# -----------------------------------------------------------------------------

# Key: str identifier
# Value: (expires_at monotonic seconds or None, cached object)
_cache_store: Dict[str, Tuple[Optional[float], Any]] = {}


def make_key(namespace: str, identifier: Any) -> str:
    """
    Utility to construct consistent cache keys.

    Example:
        make_key("org", "stats") → "org:stats"
    """
    return f"{namespace}:{identifier}"


def cache_get(key: str) -> Any:
    """
    Retrieve cached object if present and not expired.
    Returns None otherwise.
    """
    entry = _cache_store.get(key)
    if entry is None:
        return None
    expires_at, value = entry
    if expires_at is not None and time.monotonic() >= expires_at:
        _cache_store.pop(key, None)
        return None
    return value


def cache_set(key: str, value: Any, ttl: Optional[float] = None) -> None:
    """
    Store object in cache. `ttl` is in seconds; None keeps it until cleared.
    """
    expires_at = time.monotonic() + ttl if ttl is not None else None
    _cache_store[key] = (expires_at, value)


def cache_clear(namespace: str = None) -> None:
    """
    Clears cache entirely, or optionally clears only a specific namespace.

    Example:
        cache_clear("org") clears keys starting with "org:"
    """
    if namespace is None:
        _cache_store.clear()
    else:
        prefix = f"{namespace}:"
        for key in list(_cache_store.keys()):
            if key.startswith(prefix):
                _cache_store.pop(key, None)
