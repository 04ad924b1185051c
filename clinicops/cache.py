"""
In-process TTL cache for read-heavy lookups (categories, definitions,
dashboard summaries), backed by a cachetools TLRU cache so each key can
carry its own TTL. Cache failures never fail a request: they are logged
and treated as a miss.
"""
import threading
import time
from typing import Any, Callable, Optional

import structlog
from cachetools import TLRUCache

from .config import settings


logger = structlog.get_logger(__name__)

# Seconds
TTL_SHORT = 5 * 60
TTL_MEDIUM = 30 * 60
TTL_LONG = 60 * 60

TASK_CATEGORIES = "task_categories"
INCIDENT_TYPES = "incident_types"
SKILL_DEFINITIONS = "skill_definitions"
COST_CATEGORIES = "cost_categories"
DOCUMENT_CATEGORIES = "document_categories"
DASHBOARD_SUMMARY = "dashboard_summary"
DASHBOARD_STATS = "dashboard_stats"


def _time_to_use(key: str, entry: tuple, now: float) -> float:
    ttl, _ = entry
    return now + ttl


class CacheService:
    def __init__(self, max_entries: int = 100, clock: Callable[[], float] = time.monotonic):
        # entries are stored as (ttl, value)
        self._store = TLRUCache(maxsize=max_entries, ttu=_time_to_use, timer=clock)
        # cachetools caches are not thread-safe
        self._lock = threading.RLock()

    @property
    def max_entries(self) -> int:
        return self._store.maxsize

    def get(self, key: str) -> Optional[Any]:
        try:
            with self._lock:
                entry = self._store.get(key)
            return entry[1] if entry is not None else None
        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any, ttl: int = TTL_MEDIUM) -> None:
        try:
            with self._lock:
                self._store[key] = (ttl, value)
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self._store.pop(key, None)
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))

    def wrap(self, key: str, fn: Callable[[], Any], ttl: int = TTL_MEDIUM) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = fn()
        self.set(key, value, ttl)
        return value

    def invalidate_pattern(self, prefix: str) -> int:
        try:
            with self._lock:
                keys = [k for k in list(self._store.keys()) if k.startswith(prefix)]
                for k in keys:
                    self._store.pop(k, None)
                return len(keys)
        except Exception as e:
            logger.warning("cache_invalidate_failed", prefix=prefix, error=str(e))
            return 0

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


cache = CacheService(max_entries=settings.cache_max_entries)
