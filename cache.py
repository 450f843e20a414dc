from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

from config import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "budget_app_"


class CacheKeys:
    DASHBOARD = f"{KEY_PREFIX}dashboard"
    CATEGORIES = f"{KEY_PREFIX}categories"
    INCOME = f"{KEY_PREFIX}income"
    SAVINGS_GOALS = f"{KEY_PREFIX}savings_goals"
    DEBTS = f"{KEY_PREFIX}debts"


class CacheTTL:
    SHORT = 2 * 60.0
    MEDIUM = 5 * 60.0
    LONG = 15 * 60.0
    VERY_LONG = 60 * 60.0


@dataclass(frozen=True)
class CachedEntry:
    payload: str  # JSON snapshot of the cached value
    timestamp: float
    ttl: float
    version: str

    def is_stale(self, now: float, version: str) -> bool:
        return now - self.timestamp > self.ttl or self.version != version


class ExpiringCache:
    """Best-effort key-value cache with per-entry TTL and version.

    Values are stored as JSON snapshots, so callers always get a fresh copy
    back. Every failure is logged and reported as a miss.
    """

    def __init__(
        self,
        *,
        default_ttl: float = CacheTTL.MEDIUM,
        version: str = "1.0",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = default_ttl
        self.version = version
        self._clock = clock
        self._entries: dict[str, CachedEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, version: Optional[str] = None) -> Optional[Any]:
        version = version or self.version
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    return None
                if entry.is_stale(self._clock(), version):
                    del self._entries[key]
                    return None
            return json.loads(entry.payload)
        except Exception:
            logger.warning(f"cache_get_failed: key={key}", exc_info=True)
            self.clear(key)
            return None

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        version: Optional[str] = None,
    ) -> None:
        try:
            entry = CachedEntry(
                payload=json.dumps(value),
                timestamp=self._clock(),
                ttl=self.default_ttl if ttl is None else ttl,
                version=version or self.version,
            )
        except (TypeError, ValueError):
            logger.warning(f"cache_set_failed: key={key}", exc_info=True)
            return
        with self._lock:
            self._entries[key] = entry

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear_all(self) -> None:
        with self._lock:
            for key in [k for k in self._entries if k.startswith(KEY_PREFIX)]:
                del self._entries[key]

    def prune(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [
                key
                for key, entry in self._entries.items()
                if entry.is_stale(now, self.version)
            ]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_stale(self._clock(), self.version)


@lru_cache(maxsize=1)
def get_cache() -> ExpiringCache:
    settings = get_settings()
    return ExpiringCache(
        default_ttl=settings.cache_ttl_secs, version=settings.cache_version
    )
