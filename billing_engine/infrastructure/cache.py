"""
In-process read cache for billing summaries.

Invalidation policy:
- A customer's billing summary is cached per as-of date under
  summary_key(customer_id, as_of)
- A committed payment or enrollment drops every key of that customer
- A daily job run that generated or swept anything clears the cache
"""

import threading
import time
from datetime import date
from typing import Any, Callable, Hashable

from cachetools import TTLCache

from billing_engine.config import settings

_MISSING = object()


def summary_prefix(customer_id: str) -> str:
    return f"billing-summary:{customer_id}:"


def summary_key(customer_id: str, as_of: date) -> str:
    return f"{summary_prefix(customer_id)}{as_of.isoformat()}"


class SummaryCache:
    """Thread-safe wrapper around cachetools.TTLCache with prefix invalidation"""

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._entries = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling loader and caching its result on a miss"""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._entries.keys() if isinstance(k, str) and k.startswith(prefix)]:
                self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)


summary_cache = SummaryCache(ttl_seconds=settings.summary_cache_ttl_seconds)
