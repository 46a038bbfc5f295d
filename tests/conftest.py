"""Root conftest: shared fixtures for all tests.

Provides:
- In-memory store wired through the domain operation interfaces
- Memory-backed cache layer with a controllable clock
- Recording sleep so pacing and backoff never wait
- Autouse guard that fails any test reaching the real GitHub client
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from repopulse.services.cache import CacheLayer, MemoryCacheBackend

from tests.helpers.fake_store import FakeStore


class FakeClock:
    """Monotonic clock the memory cache reads instead of time.monotonic()."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ─────────────────────────────────────────────────────────────────────────────
# Store and cache
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheLayer:
    return CacheLayer(MemoryCacheBackend(maxsize=256, timer=clock), namespace="test")


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)


# ─────────────────────────────────────────────────────────────────────────────
# External Service Guard
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def block_real_github_client():
    """Unit tests inject their own transport; the shared client must stay unused."""

    def _fail():
        raise AssertionError("Test reached the real GitHub HTTP client")

    with patch("repopulse.services.github.fetcher.get_github_client", side_effect=_fail):
        yield
