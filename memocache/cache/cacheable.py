"""Detection of producer results that must not be cached.

Producer results in this application signal failure with an ``error`` field
rather than by raising. Result types can implement :class:`Cacheable` to make
that explicit; anything else is inspected structurally.

Results are stored in their JSON form. Dataclass instances and pydantic models
are written as objects, so a cache hit returns the decoded mapping rather than
the original type.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cacheable(Protocol):
    def has_error(self) -> bool: ...


def has_error_marker(result: Any) -> bool:
    if result is None:
        return False
    if isinstance(result, Cacheable):
        return result.has_error()
    if isinstance(result, Mapping):
        return result.get("error") is not None
    return getattr(result, "error", None) is not None


def is_cacheable(result: Any) -> bool:
    return not has_error_marker(result)
