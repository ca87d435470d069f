from __future__ import annotations

from memocache.config import Settings, settings

from .engine import CacheEngine
from .errors import CacheConfigError
from .providers.base import BaseStorageProvider, Clock
from .providers.browser_kv import BrowserKVStorageProvider, KeyValueStore, MemoryKeyValueStore
from .providers.filesystem import FilesystemStorageProvider
from .providers.object_storage import ObjectStorageClient, ObjectStorageProvider
from .types import CacheOptions


def create_storage_provider(
    cfg: Settings | None = None,
    *,
    object_storage_client: ObjectStorageClient | None = None,
    kv_store: KeyValueStore | None = None,
    clock: Clock | None = None,
) -> BaseStorageProvider:
    """
    Build the storage provider selected by configuration.

    Clients for external media are injected by the caller, which owns their
    lifecycle.

    Raises:
        CacheConfigError: If the object-storage provider is selected without a client,
            or the provider name is unknown.
    """
    cfg = cfg or settings
    provider = cfg.cache_provider

    if provider == "fs":
        return FilesystemStorageProvider(
            cfg.cache_dir,
            default_ttl_seconds=cfg.cache_ttl_seconds,
            clock=clock,
        )

    if provider == "s3":
        if object_storage_client is None:
            raise CacheConfigError("object_storage_client is required when cache_provider='s3'")
        return ObjectStorageProvider(
            object_storage_client,
            prefix=cfg.cache_s3_prefix,
            default_ttl_seconds=cfg.cache_ttl_seconds,
            clock=clock,
        )

    if provider == "browser":
        return BrowserKVStorageProvider(
            kv_store if kv_store is not None else MemoryKeyValueStore(),
            storage_key=cfg.cache_browser_storage_key,
            max_cache_size_bytes=cfg.cache_max_size_bytes,
            default_ttl_seconds=cfg.cache_ttl_seconds,
            clock=clock,
        )

    raise CacheConfigError(f"Unknown cache provider '{provider}'")


def create_cache_engine(
    cfg: Settings | None = None,
    *,
    object_storage_client: ObjectStorageClient | None = None,
    kv_store: KeyValueStore | None = None,
    clock: Clock | None = None,
) -> CacheEngine:
    cfg = cfg or settings
    provider = create_storage_provider(
        cfg,
        object_storage_client=object_storage_client,
        kv_store=kv_store,
        clock=clock,
    )
    default_options = CacheOptions(
        ttl_seconds=cfg.cache_ttl_seconds,
        max_stale_age_seconds=cfg.cache_max_stale_age_seconds,
    )
    return CacheEngine(provider, default_options=default_options)
