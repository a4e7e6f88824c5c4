"""
Main pytest configuration for query cache tests.

Deterministic clock, connectivity, sleep and randomness fixtures shared
by the unit tests.
"""

import os
from typing import List

import pytest

# Set test environment variables before importing cache modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("CACHE_BACKEND", None)
os.environ.pop("NETWORK_CHECK_URL", None)

from querycache.core.config import Settings, get_settings
from querycache.domain.cache.repository_interfaces import (
    ConnectivityChecker,
    ConnectivityState,
)

ONLINE = ConnectivityState(is_connected=True, is_internet_reachable=True)
OFFLINE = ConnectivityState(is_connected=False, is_internet_reachable=False)


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordedSleep:
    """Async sleep replacement that records requested delays (seconds)."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeConnectivity(ConnectivityChecker):
    """Switchable connectivity source."""

    def __init__(self, state: ConnectivityState = ONLINE):
        self.state = state
        self.calls = 0

    def go_offline(self) -> None:
        self.state = OFFLINE

    def go_online(self) -> None:
        self.state = ONLINE

    async def check(self) -> ConnectivityState:
        self.calls += 1
        return self.state


class FetchStub:
    """Counts calls and replays a scripted sequence of results.

    Exceptions in the script are raised; anything else is returned.
    The last item repeats once the script is exhausted.
    """

    def __init__(self, *results):
        self.results = list(results) or [None]
        self.calls = 0

    async def __call__(self):
        item = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def clock():
    """Provide a fake clock."""
    return FakeClock()


@pytest.fixture
def recorded_sleep():
    """Provide a recording sleep function."""
    return RecordedSleep()


@pytest.fixture
def connectivity():
    """Provide switchable connectivity, online by default."""
    return FakeConnectivity()


@pytest.fixture
def always_sweep():
    """Random source that always triggers an eviction sweep."""
    return lambda: 0.0


@pytest.fixture
def never_sweep():
    """Random source that never triggers an eviction sweep."""
    return lambda: 0.99


@pytest.fixture
def test_settings():
    """Provide isolated settings for the memory backend."""
    get_settings.cache_clear()
    return Settings(
        ENVIRONMENT="test",
        CACHE_BACKEND="memory",
        CACHE_DEFAULT_TTL_MS=600000,
        CACHE_MAX_ENTRIES=300,
        FETCH_MAX_ATTEMPTS=3,
        FETCH_BASE_DELAY_MS=1000,
        NETWORK_CHECK_URL=None,
    )


@pytest.fixture
def make_fetch():
    """Factory for scripted fetch functions."""
    return FetchStub


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "redis: marks tests as Redis-related")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "unit" in item.nodeid:
            item.add_marker(pytest.mark.unit)
        if "redis" in item.nodeid:
            item.add_marker(pytest.mark.redis)
