"""Process-local read cache for hot, rarely written documents (mission packs).

Entries expire after ``READ_CACHE_SECONDS``. Writers clear by key prefix right
after the store write; readers on other processes may see a stale pack until
expiry.
"""
from __future__ import annotations

import os
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

_TTL_SECONDS = float(os.getenv("READ_CACHE_SECONDS", "30"))
_ENABLED = os.getenv("READ_CACHE_DISABLED", "false").lower() != "true"

_entries: Dict[str, Tuple[float, Any]] = {}


def get(key: str) -> Any | None:
    if not _ENABLED:
        return None
    hit = _entries.get(key)
    if hit is None:
        return None
    expires_at, value = hit
    if time.monotonic() >= expires_at:
        del _entries[key]
        return None
    return value


def set(key: str, value: Any, ttl: Optional[float] = None) -> None:
    if _ENABLED and value is not None:
        _entries[key] = (time.monotonic() + (_TTL_SECONDS if ttl is None else ttl), value)


async def get_or_load(key: str, loader: Callable[[], Awaitable[Any]], ttl: Optional[float] = None) -> Any:
    value = get(key)
    if value is None:
        value = await loader()
        set(key, value, ttl)
    return value


def clear(prefix: str = "") -> None:
    for key in [k for k in _entries if k.startswith(prefix)]:
        del _entries[key]
