import asyncio
import json

import pytest

from memocache.__main__ import build_parser, main
from memocache.cache.providers.filesystem import FilesystemStorageProvider
from memocache.cache.types import CacheParams
from memocache.config import settings
from memocache.logger import setup_logging

PARAMS = CacheParams(key="search", params={"q": "cats"})


@pytest.fixture
def cache_dir(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "cache_provider", "fs")
    monkeypatch.setattr(settings, "cache_dir", str(tmp_path))
    monkeypatch.setattr(settings, "cache_ttl_seconds", 3600.0)
    setup_logging(to_stderr=True)
    return tmp_path


def _seed(cache_dir) -> None:
    provider = FilesystemStorageProvider(cache_dir)
    asyncio.run(provider.write_cache(provider.generate_cache_key(PARAMS), {"hits": 3}))


def _stdout_json(capsys: pytest.CaptureFixture[str]) -> dict:
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    return json.loads(lines[0])


def test_status_of_missing_entry(cache_dir, capsys) -> None:
    assert main(["status", "--key", "search", "--params", '{"q": "cats"}']) == 0
    assert _stdout_json(capsys) == {"exists": False}


def test_status_of_existing_entry(cache_dir, capsys) -> None:
    _seed(cache_dir)

    assert main(["status", "--key", "search", "--params", '{"q": "cats"}']) == 0

    out = _stdout_json(capsys)
    assert out["exists"] is True
    assert out["isExpired"] is False
    assert out["metadata"]["provider"] == "fs"


def test_clear_one_entry(cache_dir, capsys) -> None:
    _seed(cache_dir)

    main(["clear", "--key", "search", "--params", '{"q": "cats"}'])
    assert _stdout_json(capsys) == {"cleared": True}

    main(["clear", "--key", "search", "--params", '{"q": "cats"}'])
    assert _stdout_json(capsys) == {"cleared": False}


def test_clear_all(cache_dir, capsys) -> None:
    _seed(cache_dir)

    assert main(["clear-all"]) == 0

    assert _stdout_json(capsys) == {"success": True, "message": "Cache cleared successfully"}
    assert list(cache_dir.glob("*.json")) == []


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
