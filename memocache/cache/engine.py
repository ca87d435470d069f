"""
Cache engine: memoizes async producer callbacks on top of a StorageProvider.

Per-call options are merged over the engine defaults: fields left as None
inherit. Option precedence per call: disable_cache, then bypass_cache, then
stale_while_revalidate, then the standard TTL-aware read.

Concurrent misses for the same key are not deduplicated: each caller runs
the callback and writes, and the last write wins.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

from memocache.logger import get_logger

from .cacheable import is_cacheable
from .errors import CacheWriteError
from .logging import CacheTimer, log_cache_event
from .types import (
    BASE_OPTIONS,
    CacheCallback,
    CacheKey,
    CacheOptions,
    CacheParams,
    CacheResult,
    CacheStatus,
    StorageProvider,
    merge_options,
)

logger = get_logger(__name__)


class CacheEngine:
    def __init__(
        self,
        provider: StorageProvider,
        *,
        default_options: CacheOptions | None = None,
    ) -> None:
        self.provider = provider
        base = replace(BASE_OPTIONS, ttl_seconds=provider.default_ttl_seconds)
        self.default_options = merge_options(base, default_options)
        # Strong references to detached revalidation tasks.
        self._revalidations: set[asyncio.Task[None]] = set()

    def options(self, **changes: Any) -> CacheOptions:
        """Engine defaults with the given fields replaced."""
        return replace(self.default_options, **changes)

    async def with_cache[T](
        self,
        callback: CacheCallback[T],
        params: CacheParams,
        options: CacheOptions | None = None,
    ) -> CacheResult[T]:
        """
        Return the cached result for `params`, or run `callback` and cache it.

        Exceptions raised by `callback` propagate unchanged. A failed
        write-through raises CacheWriteError.

        Args:
            callback: Zero-argument coroutine function producing the value.
            params: Logical key plus parameters identifying the result.
            options: Per-call options. Fields left as None fall back to the
                engine's default options.

        Returns:
            CacheResult with the data and whether it came from the cache.
        """
        opts = merge_options(self.default_options, options)
        kind = self.provider.kind
        key = self.provider.generate_cache_key(params)

        if opts.disable_cache:
            data = await callback()
            log_cache_event(provider=kind, cache_event="disabled")
            return CacheResult(data=data, is_from_cache=False)

        if opts.bypass_cache:
            data = await callback()
            log_cache_event(provider=kind, cache_event="bypass")
            return await self._write_through(key, data, opts)

        timer = CacheTimer()
        if opts.stale_while_revalidate:
            cached = await self.provider.read_cache_with_stale(key, opts.ttl_seconds)
            if cached is None:
                log_cache_event(provider=kind, cache_event="miss", duration_ms=timer.elapsed_ms())
            elif not cached.is_stale:
                log_cache_event(provider=kind, cache_event="hit", duration_ms=timer.elapsed_ms())
                return CacheResult(data=cached.data, is_from_cache=True, metadata=cached.metadata)
            elif cached.age_seconds <= opts.max_stale_age_seconds:
                log_cache_event(
                    provider=kind, cache_event="stale_hit", duration_ms=timer.elapsed_ms()
                )
                self._spawn_revalidation(callback, key, opts)
                return CacheResult(data=cached.data, is_from_cache=True, metadata=cached.metadata)
            else:
                log_cache_event(
                    provider=kind, cache_event="stale_expired", duration_ms=timer.elapsed_ms()
                )
        else:
            cached = await self.provider.read_cache(key, opts.ttl_seconds)
            if cached is not None:
                log_cache_event(provider=kind, cache_event="hit", duration_ms=timer.elapsed_ms())
                return CacheResult(data=cached.data, is_from_cache=True, metadata=cached.metadata)
            log_cache_event(provider=kind, cache_event="miss", duration_ms=timer.elapsed_ms())

        data = await callback()
        return await self._write_through(key, data, opts)

    async def _write_through[T](
        self, key: CacheKey, data: T, opts: CacheOptions
    ) -> CacheResult[T]:
        if not is_cacheable(data):
            log_cache_event(provider=self.provider.kind, cache_event="skip", detail="reason=error")
            return CacheResult(data=data, is_from_cache=False)

        try:
            metadata = await self.provider.write_cache(
                key, data, max_cache_size_bytes=opts.max_cache_size_bytes
            )
        except CacheWriteError as error:
            logger.error("cache_write_failed", provider=self.provider.kind, error=str(error))
            raise
        return CacheResult(data=data, is_from_cache=False, metadata=metadata)

    def _spawn_revalidation(
        self, callback: CacheCallback[Any], key: CacheKey, opts: CacheOptions
    ) -> None:
        task = asyncio.create_task(self._revalidate(callback, key, opts))
        self._revalidations.add(task)
        task.add_done_callback(self._revalidations.discard)

    async def _revalidate(
        self, callback: CacheCallback[Any], key: CacheKey, opts: CacheOptions
    ) -> None:
        """Detached refresh: one callback run and at most one write. Never raises."""
        kind = self.provider.kind
        timer = CacheTimer()
        try:
            data = await callback()
            if not is_cacheable(data):
                log_cache_event(provider=kind, cache_event="skip", detail="reason=error")
                return
            await self.provider.write_cache(
                key, data, max_cache_size_bytes=opts.max_cache_size_bytes
            )
        except Exception as error:
            logger.warning("cache_revalidate_failed", provider=kind, error=str(error))
            log_cache_event(
                provider=kind, cache_event="revalidate_failed", detail=type(error).__name__
            )
            return
        log_cache_event(provider=kind, cache_event="revalidate", duration_ms=timer.elapsed_ms())

    async def wait_for_revalidations(self) -> None:
        """Wait for outstanding background revalidations (shutdown and tests)."""
        while True:
            pending = [task for task in self._revalidations if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def clear_cache(self, params: CacheParams) -> bool:
        return await self.provider.delete_cache(self.provider.generate_cache_key(params))

    async def clear_all_cache(self) -> bool:
        return await self.provider.clear_all_cache()

    async def get_cache_status(
        self, params: CacheParams, ttl_seconds: float | None = None
    ) -> CacheStatus:
        ttl = self.default_options.ttl_seconds if ttl_seconds is None else ttl_seconds
        return await self.provider.get_cache_status(params, ttl)
