"""Inspect or clear the configured cache from the command line.

Examples:
    python -m memocache status --key chat --params '{"model": "gpt-4o-mini"}'
    python -m memocache clear --key chat --params '{"model": "gpt-4o-mini"}'
    python -m memocache clear-all

Output is a single JSON line on stdout; log lines go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from typing import Any

from memocache.cache.engine import CacheEngine
from memocache.cache.provider import create_cache_engine
from memocache.cache.providers.azure_blob import AzureBlobObjectStorageClient
from memocache.cache.types import CacheParams, CacheStatus
from memocache.config import Settings, settings
from memocache.logger import setup_logging


def _parse_params(raw: str | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("--params must be a JSON object")
    return value


def _status_payload(status: CacheStatus) -> dict[str, Any]:
    payload: dict[str, Any] = {"exists": status.exists}
    if status.metadata is not None:
        payload["metadata"] = status.metadata.to_dict()
    if status.is_expired is not None:
        payload["isExpired"] = status.is_expired
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memocache", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show the status of one cache entry")
    status.add_argument("--key", required=True)
    status.add_argument("--params", default=None, help="JSON object of key parameters")
    status.add_argument("--ttl", type=float, default=None, help="TTL in seconds")

    clear = sub.add_parser("clear", help="Delete one cache entry")
    clear.add_argument("--key", required=True)
    clear.add_argument("--params", default=None, help="JSON object of key parameters")

    sub.add_parser("clear-all", help="Delete every cache entry")
    return parser


async def _run(args: argparse.Namespace, engine: CacheEngine) -> dict[str, Any]:
    if args.command == "status":
        params = CacheParams(key=args.key, params=_parse_params(args.params))
        return _status_payload(await engine.get_cache_status(params, args.ttl))

    if args.command == "clear":
        params = CacheParams(key=args.key, params=_parse_params(args.params))
        return {"cleared": await engine.clear_cache(params)}

    success = await engine.clear_all_cache()
    return {
        "success": success,
        "message": "Cache cleared successfully" if success else "Failed to clear cache",
    }


async def run(args: argparse.Namespace, cfg: Settings) -> dict[str, Any]:
    client: AzureBlobObjectStorageClient | None = None
    if cfg.cache_provider == "s3":
        client = AzureBlobObjectStorageClient.from_settings(cfg)
    try:
        engine = create_cache_engine(cfg, object_storage_client=client)
        return await _run(args, engine)
    finally:
        if client is not None:
            await client.close()


def main(argv: Sequence[str] | None = None) -> int:
    setup_logging(to_stderr=True)
    args = build_parser().parse_args(argv)
    result = asyncio.run(run(args, settings))
    print(json.dumps(result))
    if args.command == "clear-all" and not result["success"]:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
