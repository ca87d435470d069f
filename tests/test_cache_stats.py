from memocache.cache import stats
from memocache.cache.logging import CacheTimer, log_cache_event


def test_log_cache_event_increments_counters() -> None:
    before = stats.snapshot()

    log_cache_event(provider="fs", cache_event="hit")
    log_cache_event(provider="fs", cache_event="hit", duration_ms=1.23456)
    log_cache_event(provider="browser", cache_event="evict", detail="reason=lru count=2")

    after = stats.snapshot()
    assert stats.diff(before, after) == {"browser": {"evict": 1}, "fs": {"hit": 2}}


def test_snapshot_is_a_copy() -> None:
    stats.increment(provider="s3", cache_event="miss")
    snap = stats.snapshot()
    snap["s3"]["miss"] = 100

    assert stats.snapshot()["s3"]["miss"] == 1


def test_diff_omits_zero_deltas() -> None:
    before = {"fs": {"hit": 2, "miss": 1}}
    after = {"fs": {"hit": 2, "miss": 3}, "s3": {"set": 1}}

    assert stats.diff(before, after) == {"fs": {"miss": 2}, "s3": {"set": 1}}


def test_timer_is_monotonic() -> None:
    timer = CacheTimer()
    assert timer.elapsed_ms() >= 0.0
