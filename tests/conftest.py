"""Shared fixtures for pystatsview tests."""

import os
import threading

import pytest

from pystatsview import config
from pystatsview.models import RuntimeSnapshot


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCollector:
    """Collector returning snapshots whose thread count is the call number."""

    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def collect(self) -> RuntimeSnapshot:
        with self._lock:
            self.calls += 1
            n = self.calls
        return RuntimeSnapshot(
            threads=n,
            heap_rss=n * 1024 * 1024,
            heap_vms=n * 2 * 1024 * 1024,
            stack_frames=n * 10,
            gc_count=n,
            gc_pending=n,
            gc_pause_total=n / 1000.0,
            gc_cpu_fraction=n / 1_000_000.0,
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=100.0)


@pytest.fixture
def wall_clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def collector() -> CountingCollector:
    return CountingCollector()


@pytest.fixture
def settings(monkeypatch) -> config.Settings:
    """Default settings isolated from the environment."""
    for key in list(os.environ):
        if key.startswith("STATSVIEW_"):
            monkeypatch.delenv(key)
    return config.build_settings()


@pytest.fixture(autouse=True)
def _reset_default_settings():
    config.reset_settings()
    yield
    config.reset_settings()
