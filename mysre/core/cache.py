"""Process-local TTL cache for the billing analytics rollups.

Keys are tuples whose first element names a namespace, e.g.
``("billing", "stats", 10)``. Anything that moves a balance or writes a
billing record drops the whole namespace with ``invalidate_prefix``, so a
cached rollup is at most one TTL stale with respect to reads and never
stale with respect to this process's own writes.
"""

import logging
import time
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30.0

# key -> (expires_at monotonic seconds, value)
_entries: dict[tuple, tuple[float, Any]] = {}


def get(key: tuple) -> Any | None:
    entry = _entries.get(key)
    if entry is None:
        return None
    expires_at, value = entry
    if time.monotonic() >= expires_at:
        del _entries[key]
        return None
    return value


def put(key: tuple, value: Any, ttl: float = DEFAULT_TTL) -> None:
    _entries[key] = (time.monotonic() + ttl, value)


def invalidate_prefix(prefix: tuple) -> int:
    """Drop every key starting with ``prefix``; returns how many were dropped."""
    n = len(prefix)
    stale = [key for key in _entries if key[:n] == prefix]
    for key in stale:
        del _entries[key]
    if stale:
        logger.debug("Invalidated %d cache entries under %r", len(stale), prefix)
    return len(stale)


def clear() -> None:
    _entries.clear()
