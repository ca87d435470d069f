import asyncio
import json

import pytest

from memocache.cache import stats
from memocache.cache.errors import CacheWriteError
from memocache.cache.providers.object_storage import (
    MemoryObjectStorageClient,
    ObjectStorageProvider,
)
from memocache.cache.types import CacheParams


class _FlakyClient(MemoryObjectStorageClient):
    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.fail_deletes = False

    async def get_object(self, name: str) -> bytes | None:
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return await super().get_object(name)

    async def put_object(self, name: str, body: bytes, *, content_type: str = "application/json") -> None:
        if self.fail_writes:
            raise ConnectionError("store unavailable")
        await super().put_object(name, body, content_type=content_type)

    async def delete_object(self, name: str) -> bool:
        if self.fail_deletes:
            raise ConnectionError("store unavailable")
        return await super().delete_object(name)



class _PausingClient(MemoryObjectStorageClient):
    """Holds a fetched body until released, so other calls can land mid-read."""

    def __init__(self) -> None:
        super().__init__()
        self.release: asyncio.Event | None = None
        self.fetched = asyncio.Event()

    async def get_object(self, name: str) -> bytes | None:
        body = await super().get_object(name)
        if self.release is not None:
            self.fetched.set()
            await self.release.wait()
        return body

    def hold_reads(self) -> None:
        self.release = asyncio.Event()
        self.fetched.clear()

    def resume_reads(self) -> None:
        assert self.release is not None
        self.release.set()
        self.release = None

@pytest.fixture
def client() -> _FlakyClient:
    return _FlakyClient()


@pytest.fixture
def provider(client, clock) -> ObjectStorageProvider:
    return ObjectStorageProvider(client, prefix="cache/", default_ttl_seconds=60, clock=clock)


@pytest.mark.asyncio
async def test_objects_are_stored_under_prefix(provider, client) -> None:
    metadata = await provider.write_cache("abc", {"v": 1})

    assert metadata.provider == "s3"
    assert list(client.objects) == ["cache/abc.json"]
    assert client.content_types["cache/abc.json"] == "application/json"
    envelope = json.loads(client.objects["cache/abc.json"])
    assert envelope == {"data": {"v": 1}, "metadata": metadata.to_dict()}


@pytest.mark.asyncio
async def test_round_trip_and_expiry(provider, clock) -> None:
    await provider.write_cache("k", [1, "two", None])
    cached = await provider.read_cache("k")
    assert cached is not None
    assert cached.data == [1, "two", None]

    clock.advance(61)
    assert await provider.read_cache("k") is None
    assert (await provider.get_cache_status(CacheParams(key="missing"))).exists is False


@pytest.mark.asyncio
async def test_read_errors_are_misses(provider, client) -> None:
    await provider.write_cache("k", 1)
    client.fail_reads = True

    assert await provider.read_cache("k") is None
    assert await provider.read_cache_with_stale("k") is None
    assert stats.snapshot()["s3"]["read_error"] == 2


@pytest.mark.asyncio
async def test_touch_failure_does_not_fail_read(provider, client, clock) -> None:
    written = await provider.write_cache("k", 1)
    client.fail_writes = True
    clock.advance(1)

    cached = await provider.read_cache("k")

    assert cached is not None
    assert cached.data == 1
    assert cached.metadata.last_accessed_at == written.last_accessed_at


@pytest.mark.asyncio
async def test_write_errors_propagate(provider, client) -> None:
    client.fail_writes = True

    with pytest.raises(CacheWriteError) as excinfo:
        await provider.write_cache("k", 1)

    assert excinfo.value.key == "k"
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert stats.snapshot()["s3"]["write_error"] == 1


@pytest.mark.asyncio
async def test_delete_reports_existence_and_swallows_errors(provider, client) -> None:
    await provider.write_cache("k", 1)
    assert await provider.delete_cache("k") is True
    assert await provider.delete_cache("k") is False

    await provider.write_cache("k", 1)
    client.fail_deletes = True
    assert await provider.delete_cache("k") is False


@pytest.mark.asyncio
async def test_clear_all_lists_by_prefix(provider, client) -> None:
    await provider.write_cache("a", 1)
    await provider.write_cache("b", 2)
    await client.put_object("cache/readme.txt", b"keep")
    await client.put_object("other/c.json", b"{}")

    assert await provider.clear_all_cache() is True

    assert sorted(client.objects) == ["cache/readme.txt", "other/c.json"]


@pytest.mark.asyncio
async def test_clear_all_failure_returns_false(provider, client) -> None:
    await provider.write_cache("a", 1)
    client.fail_deletes = True

    assert await provider.clear_all_cache() is False


@pytest.mark.asyncio
async def test_read_in_flight_does_not_resurrect_deleted_entry(clock) -> None:
    client = _PausingClient()
    provider = ObjectStorageProvider(client, default_ttl_seconds=60, clock=clock)
    await provider.write_cache("k", {"v": "old"})

    client.hold_reads()
    read = asyncio.create_task(provider.read_cache("k"))
    await client.fetched.wait()
    assert await provider.delete_cache("k") is True
    client.resume_reads()

    cached = await read
    assert cached is not None and cached.data == {"v": "old"}
    assert client.objects == {}
    assert (await provider.get_cache_status(CacheParams(key="k"))).exists is False


@pytest.mark.asyncio
async def test_read_in_flight_keeps_newer_write(clock) -> None:
    client = _PausingClient()
    provider = ObjectStorageProvider(client, default_ttl_seconds=60, clock=clock)
    await provider.write_cache("k", {"v": "old"})

    client.hold_reads()
    read = asyncio.create_task(provider.read_cache("k"))
    await client.fetched.wait()
    # Same clock instant as the first write.
    newer = await provider.write_cache("k", {"v": "new"})
    client.resume_reads()

    assert (await read).data == {"v": "old"}
    cached = await provider.read_cache("k")
    assert cached is not None
    assert cached.data == {"v": "new"}
    assert cached.metadata.created_at == newer.created_at


@pytest.mark.asyncio
async def test_touch_updates_only_last_accessed(provider, client, clock) -> None:
    written = await provider.write_cache("k", {"v": 1})
    clock.advance(7)

    await provider.read_cache("k")

    envelope = json.loads(client.objects["cache/k.json"])
    assert envelope["data"] == {"v": 1}
    assert envelope["metadata"]["createdAt"] == written.created_at.isoformat()
    assert envelope["metadata"]["lastAccessedAt"] == clock.now.isoformat()
