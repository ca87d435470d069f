from .cacheable import Cacheable, has_error_marker, is_cacheable
from .engine import CacheEngine
from .errors import (
    CacheConfigError,
    CacheError,
    CacheQuotaExceededError,
    CacheWriteError,
    QuotaExceededError,
)
from .keys import canonical_json, derive_key, hash_bytes, hash_text
from .provider import create_cache_engine, create_storage_provider
from .types import (
    CacheEntry,
    CacheKey,
    CacheMetadata,
    CacheOptions,
    CacheParams,
    CacheRead,
    CacheResult,
    CacheStatus,
    ProviderKind,
    StaleCacheRead,
    StorageProvider,
)

__all__ = [
    "CacheConfigError",
    "CacheEngine",
    "CacheEntry",
    "CacheError",
    "CacheKey",
    "CacheMetadata",
    "CacheOptions",
    "CacheParams",
    "CacheQuotaExceededError",
    "CacheRead",
    "CacheResult",
    "CacheStatus",
    "CacheWriteError",
    "Cacheable",
    "ProviderKind",
    "QuotaExceededError",
    "StaleCacheRead",
    "StorageProvider",
    "canonical_json",
    "create_cache_engine",
    "create_storage_provider",
    "derive_key",
    "has_error_marker",
    "hash_bytes",
    "hash_text",
    "is_cacheable",
]
