"""Shared storage provider behaviour.

`BaseStorageProvider` owns the TTL and staleness policy and the
read/write/status contract. Subclasses only supply entry-level hooks.
`EnvelopeStorageProvider` further narrows those hooks to a byte-level I/O
contract for media that store one object per cache key. Access-time touches
there are conditional writes against the version that was re-read.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from memocache.logger import get_logger

from ..errors import CacheWriteError
from ..keys import derive_key, json_default
from ..logging import CacheTimer, log_cache_event
from ..types import (
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    CacheKey,
    CacheMetadata,
    CacheParams,
    CacheRead,
    CacheStatus,
    ProviderKind,
    StaleCacheRead,
)

logger = get_logger(__name__)

type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=json_default)


def encode_entry(entry: CacheEntry) -> bytes:
    return dumps(entry.to_dict()).encode("utf-8")


def decode_entry(raw: bytes) -> CacheEntry:
    return CacheEntry.from_dict(json.loads(raw.decode("utf-8")))


class BaseStorageProvider(ABC):
    kind: ProviderKind

    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock or utc_now

    def generate_cache_key(self, params: CacheParams) -> CacheKey:
        return derive_key(params.key, params.params)

    @abstractmethod
    async def _load_entry(self, key: CacheKey) -> CacheEntry | None:
        """Return the stored entry, or None when missing or unreadable. Must not raise."""

    @abstractmethod
    async def _store_entry(
        self, key: CacheKey, entry: CacheEntry, *, max_cache_size_bytes: int | None
    ) -> None:
        """Persist an entry. Raises on failure."""

    @abstractmethod
    async def _touch(self, key: CacheKey, entry: CacheEntry) -> CacheMetadata:
        """Refresh last_accessed_at. Best effort: returns the old metadata on failure."""

    @abstractmethod
    async def delete_cache(self, key: CacheKey) -> bool: ...

    @abstractmethod
    async def clear_all_cache(self) -> bool: ...

    def _resolve_ttl(self, ttl_seconds: float | None) -> float:
        return self.default_ttl_seconds if ttl_seconds is None else ttl_seconds

    def _age_seconds(self, metadata: CacheMetadata) -> float:
        return (self._clock() - metadata.created_at).total_seconds()

    def _is_expired(self, metadata: CacheMetadata, ttl_seconds: float | None) -> bool:
        return self._age_seconds(metadata) > self._resolve_ttl(ttl_seconds)

    async def read_cache(
        self, key: CacheKey, ttl_seconds: float | None = None
    ) -> CacheRead[Any] | None:
        entry = await self._load_entry(key)
        if entry is None or self._is_expired(entry.metadata, ttl_seconds):
            return None
        metadata = await self._touch(key, entry)
        return CacheRead(data=entry.data, metadata=metadata)

    async def read_cache_with_stale(
        self, key: CacheKey, ttl_seconds: float | None = None
    ) -> StaleCacheRead[Any] | None:
        entry = await self._load_entry(key)
        if entry is None:
            return None
        age = self._age_seconds(entry.metadata)
        metadata = await self._touch(key, entry)
        return StaleCacheRead(
            data=entry.data,
            metadata=metadata,
            is_stale=age > self._resolve_ttl(ttl_seconds),
            age_seconds=age,
        )

    async def write_cache(
        self, key: CacheKey, data: Any, *, max_cache_size_bytes: int | None = None
    ) -> CacheMetadata:
        now = self._clock()
        metadata = CacheMetadata(
            created_at=now, last_accessed_at=now, key=key, provider=self.kind
        )
        timer = CacheTimer()
        try:
            await self._store_entry(
                key,
                CacheEntry(data=data, metadata=metadata),
                max_cache_size_bytes=max_cache_size_bytes,
            )
        except CacheWriteError:
            log_cache_event(provider=self.kind, cache_event="write_error")
            raise
        except Exception as error:
            log_cache_event(
                provider=self.kind, cache_event="write_error", detail=type(error).__name__
            )
            raise CacheWriteError(f"Failed to write to {self.kind} cache", key=key) from error

        log_cache_event(provider=self.kind, cache_event="set", duration_ms=timer.elapsed_ms())
        return metadata

    async def get_cache_status(
        self, params: CacheParams, ttl_seconds: float | None = None
    ) -> CacheStatus:
        entry = await self._load_entry(self.generate_cache_key(params))
        if entry is None:
            return CacheStatus(exists=False)
        return CacheStatus(
            exists=True,
            metadata=entry.metadata,
            is_expired=self._is_expired(entry.metadata, ttl_seconds),
        )


class EnvelopeStorageProvider(BaseStorageProvider):
    """Provider over a medium holding one JSON envelope per cache key."""

    @abstractmethod
    async def _read_bytes(self, key: CacheKey) -> bytes | None:
        """Return the stored bytes, or None if no object exists for the key."""

    @abstractmethod
    async def _write_bytes(self, key: CacheKey, payload: bytes) -> None: ...

    @abstractmethod
    async def _delete_bytes(self, key: CacheKey) -> bool:
        """Delete the object; return whether it existed."""

    @abstractmethod
    async def _read_versioned(self, key: CacheKey) -> tuple[bytes, str] | None:
        """Return the stored bytes with an opaque version tag, or None if missing."""

    @abstractmethod
    async def _write_if_unchanged(self, key: CacheKey, payload: bytes, version: str) -> bool:
        """Write only if the object still carries `version`; return whether it was written."""

    @abstractmethod
    async def _list_keys(self) -> list[CacheKey]: ...

    async def _load_entry(self, key: CacheKey) -> CacheEntry | None:
        try:
            raw = await self._read_bytes(key)
            if raw is None:
                return None
            return decode_entry(raw)
        except Exception as error:
            logger.warning("cache_read_failed", provider=self.kind, error=str(error))
            log_cache_event(
                provider=self.kind, cache_event="read_error", detail=type(error).__name__
            )
            return None

    async def _store_entry(
        self, key: CacheKey, entry: CacheEntry, *, max_cache_size_bytes: int | None
    ) -> None:
        # No size bound on per-object media.
        await self._write_bytes(key, encode_entry(entry))

    async def _touch(self, key: CacheKey, entry: CacheEntry) -> CacheMetadata:
        # Only the stored envelope that was read may be touched: a write or
        # delete landing after the read must survive.
        try:
            current = await self._read_versioned(key)
            if current is None:
                logger.debug("cache_touch_skipped", provider=self.kind, reason="deleted")
                return entry.metadata
            raw, version = current
            stored = decode_entry(raw)
            if stored.metadata.created_at != entry.metadata.created_at:
                logger.debug("cache_touch_skipped", provider=self.kind, reason="replaced")
                return entry.metadata
            metadata = replace(stored.metadata, last_accessed_at=self._clock())
            payload = encode_entry(replace(stored, metadata=metadata))
            if not await self._write_if_unchanged(key, payload, version):
                logger.debug("cache_touch_skipped", provider=self.kind, reason="modified")
                return entry.metadata
        except Exception as error:
            logger.warning("cache_touch_failed", provider=self.kind, error=str(error))
            return entry.metadata
        return metadata

    async def delete_cache(self, key: CacheKey) -> bool:
        try:
            existed = await self._delete_bytes(key)
        except Exception as error:
            logger.error("cache_delete_failed", provider=self.kind, error=str(error))
            return False
        if existed:
            log_cache_event(provider=self.kind, cache_event="delete")
        return existed

    async def clear_all_cache(self) -> bool:
        timer = CacheTimer()
        try:
            keys = await self._list_keys()
            for key in keys:
                await self._delete_bytes(key)
        except Exception as error:
            logger.error("cache_clear_failed", provider=self.kind, error=str(error))
            return False
        log_cache_event(
            provider=self.kind,
            cache_event="clear",
            duration_ms=timer.elapsed_ms(),
            detail=f"count={len(keys)}",
        )
        return True
