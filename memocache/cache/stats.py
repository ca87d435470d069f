"""Process-wide cache event counters, fed by `log_cache_event`.

Counts are kept flat per ``(provider, cache_event)`` pair and exposed as
``{provider: {cache_event: count}}``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from threading import Lock

type Counts = dict[str, dict[str, int]]

_COUNTS: Counter[tuple[str, str]] = Counter()
_LOCK = Lock()


def _flatten(counts: Mapping[str, Mapping[str, int]]) -> Iterable[tuple[tuple[str, str], int]]:
    for provider, events in counts.items():
        for cache_event, count in events.items():
            yield (provider, cache_event), count


def _nest(flat: Mapping[tuple[str, str], int]) -> Counts:
    out: Counts = {}
    for (provider, cache_event), count in sorted(flat.items()):
        if count:
            out.setdefault(provider, {})[cache_event] = count
    return out


def increment(*, provider: str, cache_event: str) -> None:
    with _LOCK:
        _COUNTS[(provider, cache_event)] += 1


def snapshot() -> Counts:
    """Current counts as fresh nested dicts."""
    with _LOCK:
        return _nest(_COUNTS)


def reset() -> None:
    with _LOCK:
        _COUNTS.clear()


def diff(before: Counts, after: Counts) -> Counts:
    """Per-event change from `before` to `after`; unchanged events are left out."""
    delta: dict[tuple[str, str], int] = dict(_flatten(after))
    for pair, count in _flatten(before):
        delta[pair] = delta.get(pair, 0) - count
    return _nest(delta)
