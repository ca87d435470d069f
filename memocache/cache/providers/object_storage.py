from __future__ import annotations

from itertools import count
from typing import Protocol

from ..types import DEFAULT_TTL_SECONDS, CacheKey
from .base import Clock, EnvelopeStorageProvider

DEFAULT_PREFIX = "cache/"
_SUFFIX = ".json"


class ObjectStorageClient(Protocol):
    """Narrow object-store contract used by ObjectStorageProvider."""

    async def get_object(self, name: str) -> bytes | None: ...

    async def put_object(
        self, name: str, body: bytes, *, content_type: str = "application/json"
    ) -> None: ...

    async def get_object_with_etag(self, name: str) -> tuple[bytes, str] | None: ...

    async def put_object_if_unchanged(
        self, name: str, body: bytes, *, etag: str, content_type: str = "application/json"
    ) -> bool:
        """Overwrite only while the object still has `etag`; False if it changed or is gone."""
        ...

    async def delete_object(self, name: str) -> bool: ...

    async def list_objects(self, prefix: str) -> list[str]: ...


class MemoryObjectStorageClient(ObjectStorageClient):
    """Process-local object store for development and tests."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.etags: dict[str, str] = {}
        self._revisions = count(1)

    async def get_object(self, name: str) -> bytes | None:
        return self.objects.get(name)

    async def get_object_with_etag(self, name: str) -> tuple[bytes, str] | None:
        if name not in self.objects:
            return None
        return self.objects[name], self.etags[name]

    async def put_object(
        self, name: str, body: bytes, *, content_type: str = "application/json"
    ) -> None:
        self.objects[name] = body
        self.content_types[name] = content_type
        self.etags[name] = f'"{next(self._revisions)}"'

    async def put_object_if_unchanged(
        self, name: str, body: bytes, *, etag: str, content_type: str = "application/json"
    ) -> bool:
        if self.etags.get(name) != etag:
            return False
        await self.put_object(name, body, content_type=content_type)
        return True

    async def delete_object(self, name: str) -> bool:
        self.content_types.pop(name, None)
        self.etags.pop(name, None)
        return self.objects.pop(name, None) is not None

    async def list_objects(self, prefix: str) -> list[str]:
        return sorted(name for name in self.objects if name.startswith(prefix))


class ObjectStorageProvider(EnvelopeStorageProvider):
    """One object per entry at `<prefix><cacheKey>.json`.

    The client is injected and owned by the caller. Eventual consistency of
    the underlying store is not compensated for.
    """

    kind = "s3"

    def __init__(
        self,
        client: ObjectStorageClient,
        *,
        prefix: str = DEFAULT_PREFIX,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(default_ttl_seconds=default_ttl_seconds, clock=clock)
        self.client = client
        self.prefix = prefix

    def object_name(self, key: CacheKey) -> str:
        return f"{self.prefix}{key}{_SUFFIX}"

    async def _read_bytes(self, key: CacheKey) -> bytes | None:
        return await self.client.get_object(self.object_name(key))

    async def _write_bytes(self, key: CacheKey, payload: bytes) -> None:
        await self.client.put_object(
            self.object_name(key), payload, content_type="application/json"
        )

    async def _delete_bytes(self, key: CacheKey) -> bool:
        return await self.client.delete_object(self.object_name(key))

    async def _read_versioned(self, key: CacheKey) -> tuple[bytes, str] | None:
        return await self.client.get_object_with_etag(self.object_name(key))

    async def _write_if_unchanged(self, key: CacheKey, payload: bytes, version: str) -> bool:
        return await self.client.put_object_if_unchanged(
            self.object_name(key), payload, etag=version, content_type="application/json"
        )

    async def _list_keys(self) -> list[CacheKey]:
        names = await self.client.list_objects(self.prefix)
        return [
            name[len(self.prefix) : -len(_SUFFIX)]
            for name in names
            if name.endswith(_SUFFIX)
        ]
