"""Memoizing cache layer for async producer callbacks."""

from memocache.cache import (
    CacheEngine,
    CacheOptions,
    CacheParams,
    CacheResult,
    CacheStatus,
    create_cache_engine,
)

__all__ = [
    "CacheEngine",
    "CacheOptions",
    "CacheParams",
    "CacheResult",
    "CacheStatus",
    "create_cache_engine",
]
