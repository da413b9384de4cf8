"""Shared protocol for correlation cache backends."""

from typing import Optional, Protocol, Union

CacheValue = Union[str, bytes]


class CacheBackend(Protocol):
    """The subset of the Redis client API the correlation cache relies on."""

    def get(self, key: str) -> Optional[CacheValue]:
        """Return the value stored at key, or None if missing or expired."""

    def setex(self, key: str, ttl: int, value: str) -> object:
        """Store value at key, overwriting, expiring after ttl seconds."""

    def ping(self) -> bool:
        """Return True if the backend is reachable; raise otherwise."""
