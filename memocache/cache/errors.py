"""Cache error types.

Read-side failures never surface as exceptions (they degrade to a miss), so
everything here describes writes or configuration.
"""

from __future__ import annotations


class CacheError(RuntimeError):
    """Base class for cache layer failures."""


class CacheWriteError(CacheError):
    """Raised when a cache entry could not be persisted."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class CacheQuotaExceededError(CacheWriteError):
    """Raised when a size-bounded medium is still full after eviction."""


class CacheConfigError(CacheError):
    """Raised when a storage provider cannot be built from configuration."""


class QuotaExceededError(Exception):
    """Raised by a key-value store when a write would exceed its storage quota."""
