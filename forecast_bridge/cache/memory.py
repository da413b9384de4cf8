"""In-memory cache backend with TTL, intended for development and tests."""

import threading
import time
from typing import Optional

from forecast_bridge.cache.base import CacheBackend

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/in_memory_cache")


class InMemoryCacheBackend(CacheBackend):
    """Thread-safe, TTL-aware stand-in for Redis (single-process dev/test)."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryCacheBackend")
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        """Return the value at key, evicting it if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, exp = entry
            if exp <= time.monotonic():
                self._entries.pop(key, None)
                return None
            return value

    def setex(self, key: str, ttl: int, value: str) -> bool:
        """Overwrite key with value, expiring after ttl seconds."""
        with self._lock:
            self._entries[key] = (value, time.monotonic() + ttl)
        return True

    def ping(self) -> bool:
        return True

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until key expires, or None if missing."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        return max(0.0, entry[1] - time.monotonic())
