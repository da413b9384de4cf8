"""Correlation cache and its storage backends."""

from .base import CacheBackend
from .correlation import CorrelationCache
from .memory import InMemoryCacheBackend

__all__ = [
    "CacheBackend",
    "CorrelationCache",
    "InMemoryCacheBackend",
]
