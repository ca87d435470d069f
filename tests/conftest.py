"""Test fixtures and configuration."""

from datetime import UTC, datetime, timedelta

import pytest

from memocache.cache import stats


class FakeClock:
    """Manually advanced UTC clock for TTL and staleness tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_stats():
    stats.reset()
    yield
    stats.reset()
