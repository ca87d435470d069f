from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

type CacheKey = str

type ProviderKind = Literal["fs", "s3", "browser"]

type CacheCallback[T] = Callable[[], Awaitable[T]]

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_MAX_STALE_AGE_SECONDS = 7 * 24 * 3600.0


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    # Naive timestamps are UTC.
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    created_at: datetime
    last_accessed_at: datetime
    key: CacheKey
    provider: ProviderKind

    def to_dict(self) -> dict[str, str]:
        """Envelope wire form (camelCase keys, ISO-8601 timestamps)."""
        return {
            "createdAt": self.created_at.isoformat(),
            "lastAccessedAt": self.last_accessed_at.isoformat(),
            "key": self.key,
            "provider": self.provider,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CacheMetadata:
        created_at = parse_timestamp(data["createdAt"])
        # Older envelopes may lack lastAccessedAt.
        last_accessed_raw = data.get("lastAccessedAt")
        last_accessed_at = (
            parse_timestamp(last_accessed_raw) if last_accessed_raw else created_at
        )
        return CacheMetadata(
            created_at=created_at,
            last_accessed_at=last_accessed_at,
            key=data["key"],
            provider=data["provider"],
        )


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One stored envelope: the JSON payload plus its metadata."""

    data: Any
    metadata: CacheMetadata

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "metadata": self.metadata.to_dict()}

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> CacheEntry:
        return CacheEntry(data=raw["data"], metadata=CacheMetadata.from_dict(raw["metadata"]))


@dataclass(frozen=True, slots=True)
class CacheOptions:
    """Per-call cache behaviour. Fields left as None inherit the engine defaults."""

    ttl_seconds: float | None = None
    # Skip the read, still write the fresh result.
    bypass_cache: bool | None = None
    # Skip read and write entirely.
    disable_cache: bool | None = None
    stale_while_revalidate: bool | None = None
    max_stale_age_seconds: float | None = None
    # None means the provider's configured limit.
    max_cache_size_bytes: int | None = None


BASE_OPTIONS = CacheOptions(
    ttl_seconds=DEFAULT_TTL_SECONDS,
    bypass_cache=False,
    disable_cache=False,
    stale_while_revalidate=False,
    max_stale_age_seconds=DEFAULT_MAX_STALE_AGE_SECONDS,
)


def merge_options(base: CacheOptions, override: CacheOptions | None) -> CacheOptions:
    """Return `base` with every field that `override` sets (not None) replaced."""
    if override is None:
        return base
    changes = {
        f.name: value
        for f in fields(override)
        if (value := getattr(override, f.name)) is not None
    }
    return replace(base, **changes)


@dataclass(frozen=True, slots=True)
class CacheParams:
    key: str
    params: Mapping[str, Any] | None = field(default=None)


@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    data: T
    is_from_cache: bool
    metadata: CacheMetadata | None = None


@dataclass(frozen=True, slots=True)
class CacheStatus:
    exists: bool
    metadata: CacheMetadata | None = None
    is_expired: bool | None = None


@dataclass(frozen=True, slots=True)
class CacheRead[T]:
    data: T
    metadata: CacheMetadata


@dataclass(frozen=True, slots=True)
class StaleCacheRead[T]:
    data: T
    metadata: CacheMetadata
    is_stale: bool
    # Seconds since created_at, measured by the provider's clock.
    age_seconds: float = 0.0


class StorageProvider(Protocol):
    kind: ProviderKind
    default_ttl_seconds: float

    def generate_cache_key(self, params: CacheParams) -> CacheKey: ...

    async def read_cache(
        self, key: CacheKey, ttl_seconds: float | None = None
    ) -> CacheRead[Any] | None: ...

    async def read_cache_with_stale(
        self, key: CacheKey, ttl_seconds: float | None = None
    ) -> StaleCacheRead[Any] | None: ...

    async def write_cache(
        self, key: CacheKey, data: Any, *, max_cache_size_bytes: int | None = None
    ) -> CacheMetadata: ...

    async def delete_cache(self, key: CacheKey) -> bool: ...

    async def clear_all_cache(self) -> bool: ...

    async def get_cache_status(
        self, params: CacheParams, ttl_seconds: float | None = None
    ) -> CacheStatus: ...
