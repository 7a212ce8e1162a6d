"""Shared fixtures for the remote config client tests"""

from datetime import datetime, timedelta, timezone

import pytest

from abtest_remote_config import (
    ClientSettings,
    EventTracker,
    InMemoryAnalyticsBackend,
    InMemoryRemoteConfigBackend,
    RemoteConfigClient,
)


class FakeClock:
    """Manually advanced clock shared by the client and the backend"""

    def __init__(self, start: datetime = datetime(2025, 8, 27, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(custom_signals={"role": "agent"})


@pytest.fixture
def backend(clock: FakeClock) -> InMemoryRemoteConfigBackend:
    return InMemoryRemoteConfigBackend(clock=clock)


@pytest.fixture
def client(backend: InMemoryRemoteConfigBackend, settings: ClientSettings, clock: FakeClock) -> RemoteConfigClient:
    return RemoteConfigClient(backend, settings, clock=clock)


@pytest.fixture
def analytics() -> InMemoryAnalyticsBackend:
    return InMemoryAnalyticsBackend()


@pytest.fixture
def tracker(analytics: InMemoryAnalyticsBackend) -> EventTracker:
    return EventTracker(analytics)
