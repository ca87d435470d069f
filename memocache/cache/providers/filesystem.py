from __future__ import annotations

import asyncio
import os
import tempfile
from functools import partial
from pathlib import Path
from threading import Lock

from ..types import DEFAULT_TTL_SECONDS, CacheKey
from .base import Clock, EnvelopeStorageProvider

DEFAULT_CACHE_DIR = ".cache"


class FilesystemStorageProvider(EnvelopeStorageProvider):
    """One JSON file per entry at `<root>/<cacheKey>.json`.

    Blocking file I/O runs in the loop's default executor. The root directory
    is created on first write. No size cap is enforced. Mutations of a file
    are serialized by a lock so a conditional touch cannot interleave with a
    write or delete from the same process.
    """

    kind = "fs"

    def __init__(
        self,
        root: str | os.PathLike[str] = DEFAULT_CACHE_DIR,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(default_ttl_seconds=default_ttl_seconds, clock=clock)
        self.root = Path(root)
        self._lock = Lock()

    def path_for(self, key: CacheKey) -> Path:
        return self.root / f"{key}.json"

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _read_sync(self, key: CacheKey) -> bytes | None:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    @staticmethod
    def _version(stat: os.stat_result) -> str:
        return f"{stat.st_ino}:{stat.st_mtime_ns}:{stat.st_size}"

    def _read_versioned_sync(self, key: CacheKey) -> tuple[bytes, str] | None:
        try:
            with self.path_for(key).open("rb") as handle:
                return handle.read(), self._version(os.fstat(handle.fileno()))
        except FileNotFoundError:
            return None

    def _write_sync(self, key: CacheKey, payload: bytes) -> None:
        with self._lock:
            self._replace_file(key, payload)

    def _write_if_unchanged_sync(self, key: CacheKey, payload: bytes, version: str) -> bool:
        with self._lock:
            try:
                current = self._version(self.path_for(key).stat())
            except FileNotFoundError:
                return False
            if current != version:
                return False
            self._replace_file(key, payload)
            return True

    def _replace_file(self, key: CacheKey, payload: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a partial envelope.
        fd, tmp_name = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _delete_sync(self, key: CacheKey) -> bool:
        with self._lock:
            try:
                self.path_for(key).unlink()
            except FileNotFoundError:
                return False
            return True

    def _list_sync(self) -> list[CacheKey]:
        if not self.root.is_dir():
            return []
        return [path.stem for path in self.root.glob("*.json")]

    async def _read_bytes(self, key: CacheKey) -> bytes | None:
        return await self._run(self._read_sync, key)

    async def _write_bytes(self, key: CacheKey, payload: bytes) -> None:
        await self._run(self._write_sync, key, payload)

    async def _delete_bytes(self, key: CacheKey) -> bool:
        return await self._run(self._delete_sync, key)

    async def _read_versioned(self, key: CacheKey) -> tuple[bytes, str] | None:
        return await self._run(self._read_versioned_sync, key)

    async def _write_if_unchanged(self, key: CacheKey, payload: bytes, version: str) -> bool:
        return await self._run(self._write_if_unchanged_sync, key, payload, version)

    async def _list_keys(self) -> list[CacheKey]:
        return await self._run(self._list_sync)
