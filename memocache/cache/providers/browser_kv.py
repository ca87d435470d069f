"""
Browser-style key-value cache provider.

All entries live in one JSON container stored under a single key of a
string key-value store with a hard total quota (the localStorage model):

    {"entries": {"<cacheKey>": {"data": ..., "metadata": {...}}}}

Container size is estimated as `len(json) * 2` (UTF-16 storage cost). When
a write pushes the estimate past `max_cache_size_bytes`, least recently
accessed entries are evicted until `cleanup_fraction` of the limit has been
freed. The entry being written is never evicted. Only writes evict: touches
and deletes persist the container as is.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Protocol

from memocache.logger import get_logger

from ..errors import CacheQuotaExceededError, QuotaExceededError
from ..keys import derive_key
from ..logging import log_cache_event
from ..types import DEFAULT_TTL_SECONDS, CacheEntry, CacheKey, CacheMetadata, CacheParams
from .base import BaseStorageProvider, Clock, dumps

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "app_cache"
DEFAULT_MAX_CACHE_SIZE_BYTES = 2 * 1024 * 1024
DEFAULT_CLEANUP_FRACTION = 0.25
KEY_PREFIX = "cache_"

_OLDEST = datetime.min.replace(tzinfo=UTC)


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    """In-process string store with an optional quota, sized like localStorage."""

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self.items: dict[str, str] = {}

    @staticmethod
    def _cost(key: str, value: str) -> int:
        return (len(key) + len(value)) * 2

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(self._cost(k, v) for k, v in self.items.items() if k != key)
            if used + self._cost(key, value) > self.quota_bytes:
                raise QuotaExceededError(f"Setting '{key}' exceeded the storage quota")
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


def estimate_size(serialized: str) -> int:
    return len(serialized) * 2


def _access_order(raw: Any) -> tuple[datetime, datetime]:
    try:
        metadata = CacheMetadata.from_dict(raw["metadata"])
    except (KeyError, TypeError, ValueError):
        # Unreadable entries go first.
        return _OLDEST, _OLDEST
    return metadata.last_accessed_at, metadata.created_at


class BrowserKVStorageProvider(BaseStorageProvider):
    kind = "browser"

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_cache_size_bytes: int = DEFAULT_MAX_CACHE_SIZE_BYTES,
        cleanup_fraction: float = DEFAULT_CLEANUP_FRACTION,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        if max_cache_size_bytes <= 0:
            raise ValueError("max_cache_size_bytes must be > 0")
        if not 0 < cleanup_fraction <= 1:
            raise ValueError("cleanup_fraction must be in (0, 1]")
        super().__init__(default_ttl_seconds=default_ttl_seconds, clock=clock)
        self.store = store
        self.storage_key = storage_key
        self.max_cache_size_bytes = max_cache_size_bytes
        self.cleanup_fraction = cleanup_fraction
        # Guards the read-JSON -> mutate -> write-JSON sequence on the container.
        self._lock = Lock()

    def generate_cache_key(self, params: CacheParams) -> CacheKey:
        return f"{KEY_PREFIX}{derive_key(params.key, params.params)}"

    def _load_container(self) -> dict[str, Any]:
        stored = self.store.get_item(self.storage_key)
        if not stored:
            return {"entries": {}}
        try:
            container = json.loads(stored)
        except ValueError:
            logger.warning("browser_cache_corrupt", storage_key=self.storage_key)
            return {"entries": {}}
        if not isinstance(container, dict) or not isinstance(container.get("entries"), dict):
            return {"entries": {}}
        return container

    def container_size(self) -> int:
        """Estimated size in bytes of the stored container."""
        with self._lock:
            return estimate_size(dumps(self._load_container()))

    def _evict(self, container: dict[str, Any], *, target_bytes: float, protect: str | None) -> bool:
        """Drop least recently accessed entries until `target_bytes` are freed."""
        entries: dict[str, Any] = container["entries"]
        initial_size = estimate_size(dumps(container))

        candidates = sorted(
            (key for key in entries if key != protect),
            key=lambda key: _access_order(entries[key]),
        )

        freed = 0
        evicted = 0
        for key in candidates:
            if freed >= target_bytes:
                break
            # `"key":{...}` without the separating comma: never more than what removal frees.
            freed += estimate_size(dumps(key) + ":" + dumps(entries[key]))
            del entries[key]
            evicted += 1

        final_size = estimate_size(dumps(container))
        if evicted:
            log_cache_event(
                provider=self.kind,
                cache_event="evict",
                detail=f"reason=lru count={evicted} freed_bytes={initial_size - final_size}",
            )
        return initial_size - final_size >= target_bytes

    def _persist(self, container: dict[str, Any]) -> None:
        self.store.set_item(self.storage_key, dumps(container))

    def _save(
        self,
        container: dict[str, Any],
        *,
        protect: str | None,
        max_cache_size_bytes: int | None = None,
    ) -> None:
        limit = max_cache_size_bytes or self.max_cache_size_bytes
        serialized = dumps(container)

        if estimate_size(serialized) > limit:
            self._evict(container, target_bytes=limit * self.cleanup_fraction, protect=protect)
            serialized = dumps(container)

        try:
            self.store.set_item(self.storage_key, serialized)
            return
        except QuotaExceededError:
            logger.warning("browser_cache_quota_exceeded", storage_key=self.storage_key)

        target = estimate_size(serialized) * self.cleanup_fraction
        if not self._evict(container, target_bytes=target, protect=protect):
            raise CacheQuotaExceededError("Failed to free enough browser storage space", key=protect)
        try:
            self.store.set_item(self.storage_key, dumps(container))
        except QuotaExceededError as error:
            raise CacheQuotaExceededError(
                "Failed to write to browser cache after cleanup", key=protect
            ) from error

    async def _load_entry(self, key: CacheKey) -> CacheEntry | None:
        try:
            with self._lock:
                raw = self._load_container()["entries"].get(key)
            if raw is None:
                return None
            return CacheEntry.from_dict(raw)
        except Exception as error:
            logger.warning("cache_read_failed", provider=self.kind, error=str(error))
            log_cache_event(
                provider=self.kind, cache_event="read_error", detail=type(error).__name__
            )
            return None

    async def _store_entry(
        self, key: CacheKey, entry: CacheEntry, *, max_cache_size_bytes: int | None
    ) -> None:
        with self._lock:
            container = self._load_container()
            container["entries"][key] = entry.to_dict()
            self._save(container, protect=key, max_cache_size_bytes=max_cache_size_bytes)

    async def _touch(self, key: CacheKey, entry: CacheEntry) -> CacheMetadata:
        metadata = replace(entry.metadata, last_accessed_at=self._clock())
        try:
            with self._lock:
                container = self._load_container()
                raw = container["entries"].get(key)
                if raw is None:
                    return entry.metadata
                raw["metadata"] = metadata.to_dict()
                # Reads never evict; a quota failure just skips the touch.
                self._persist(container)
        except Exception as error:
            logger.warning("cache_touch_failed", provider=self.kind, error=str(error))
            return entry.metadata
        return metadata

    async def delete_cache(self, key: CacheKey) -> bool:
        try:
            with self._lock:
                container = self._load_container()
                if key not in container["entries"]:
                    return False
                del container["entries"][key]
                self._persist(container)
        except Exception as error:
            logger.error("cache_delete_failed", provider=self.kind, error=str(error))
            return False
        log_cache_event(provider=self.kind, cache_event="delete")
        return True

    async def clear_all_cache(self) -> bool:
        try:
            with self._lock:
                self.store.remove_item(self.storage_key)
        except Exception as error:
            logger.error("cache_clear_failed", provider=self.kind, error=str(error))
            return False
        log_cache_event(provider=self.kind, cache_event="clear")
        return True
