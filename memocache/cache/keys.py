"""Deterministic cache key derivation.

A cache key is ``sha256("<logical_key>:<canonical_json(params)>")`` as a
64-character lowercase hex string. ``canonical_json`` sorts object members
recursively, keeps array order, uses ``,``/``:`` separators with no
whitespace and leaves non-ASCII characters unescaped, so the same rule can be
reproduced in other runtimes.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from .types import CacheKey


def json_default(value: Any) -> Any:
    """Encode dates, dataclass instances and pydantic models for json.dumps."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonical_json(value: Any) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=json_default,
    )


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def derive_key(logical_key: str, params: Mapping[str, Any] | None = None) -> CacheKey:
    """Derive the cache key for a logical key and its parameters.

    ``params=None`` is treated as an empty mapping. Circular references raise
    ``ValueError`` and unserializable values raise ``TypeError``.
    """
    canonical = canonical_json({} if params is None else dict(params))
    return hash_text(f"{logical_key}:{canonical}")
