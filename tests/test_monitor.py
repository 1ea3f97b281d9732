"""Tests for the SnapshotStore and StatsScheduler classes."""

import logging
import threading
import time

import pytest

from pystatsview.models import RuntimeSnapshot
from pystatsview.monitor import ACTIVITY_WINDOW, SnapshotStore, StatsScheduler


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_starts_empty(self):
        store = SnapshotStore()
        snapshot, sampled_at = store.read()

        assert snapshot == RuntimeSnapshot.empty()
        assert sampled_at == 0.0
        assert store.generation == 0

    def test_install_replaces_pair(self, collector):
        store = SnapshotStore()
        snapshot = collector.collect()

        store.install(snapshot, 123.0)

        assert store.read() == (snapshot, 123.0)
        assert store.sampled_at == 123.0
        assert store.generation == 1


class TestStatsScheduler:
    """Tests for StatsScheduler."""

    def make(self, collector, clock, wall_clock, interval=0.1):
        return StatsScheduler(
            SnapshotStore(),
            interval=interval,
            collector=collector,
            clock=clock,
            wall_clock=wall_clock,
        )

    def test_scheduler_creation(self, collector):
        scheduler = StatsScheduler(SnapshotStore(), collector=collector)

        assert scheduler.interval == 2.0
        assert not scheduler.is_running

    def test_rejects_non_positive_interval(self, collector):
        with pytest.raises(ValueError):
            StatsScheduler(SnapshotStore(), interval=0, collector=collector)

    def test_initially_active(self, collector, clock, wall_clock):
        """Test the first ticks after construction sample without any pull."""
        scheduler = self.make(collector, clock, wall_clock)

        assert scheduler.deadline == pytest.approx(clock.now + ACTIVITY_WINDOW * 0.1)
        assert scheduler.refresh() is True
        assert scheduler.store.generation == 1

    def test_idle_ticks_do_not_refresh(self, collector, clock, wall_clock):
        """Test no refresh happens once the activity window has passed."""
        scheduler = self.make(collector, clock, wall_clock)
        clock.advance(0.3)

        before = scheduler.store.read()
        for _ in range(5):
            assert scheduler.refresh() is False
            clock.advance(0.1)

        assert scheduler.store.read() == before
        assert scheduler.store.generation == 0
        assert collector.calls == 0

    def test_notify_activity_extends_deadline(self, collector, clock, wall_clock):
        """Test a pull at T allows refreshes through T + 2 intervals."""
        scheduler = self.make(collector, clock, wall_clock)
        clock.advance(10.0)
        assert scheduler.refresh() is False

        scheduler.notify_activity()

        clock.advance(0.1)
        assert scheduler.refresh() is True
        clock.advance(0.09)
        assert scheduler.refresh() is True
        clock.advance(0.02)
        assert scheduler.refresh() is False
        assert scheduler.store.generation == 2

    def test_deadline_never_moves_backwards(self, collector, clock, wall_clock):
        scheduler = self.make(collector, clock, wall_clock)
        clock.advance(5.0)
        scheduler.notify_activity()
        deadline = scheduler.deadline

        clock.now -= 1.0
        scheduler.notify_activity()

        assert scheduler.deadline == deadline

    def test_is_active(self, collector, clock, wall_clock):
        scheduler = self.make(collector, clock, wall_clock)

        assert scheduler.is_active()
        assert scheduler.is_active(scheduler.deadline)
        assert not scheduler.is_active(scheduler.deadline + 0.001)

    def test_refresh_stamps_sample_time(self, collector, clock, wall_clock):
        scheduler = self.make(collector, clock, wall_clock)

        scheduler.refresh()

        snapshot, sampled_at = scheduler.store.read()
        assert snapshot.threads == 1
        assert sampled_at == wall_clock.now

    def test_sample_time_is_monotonic(self, collector, clock, wall_clock):
        """Test the sample time never decreases even if the wall clock does."""
        scheduler = self.make(collector, clock, wall_clock)
        stamps = []

        for step in (1.0, -5.0, 2.0, -0.5):
            wall_clock.advance(step)
            scheduler.notify_activity()
            scheduler.refresh()
            stamps.append(scheduler.store.sampled_at)

        assert stamps == sorted(stamps)

    def test_failed_collection_keeps_snapshot(self, clock, wall_clock, caplog):
        """Test a failing collector is reported and the tick skipped."""

        class BrokenCollector:
            def collect(self):
                raise RuntimeError("collector failed")

        scheduler = self.make(BrokenCollector(), clock, wall_clock)

        with caplog.at_level(logging.ERROR, logger="pystatsview.monitor"):
            assert scheduler.refresh() is False

        assert scheduler.store.generation == 0
        assert "collection failed" in caplog.text

    def test_start_stop(self, collector):
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05, collector=collector)

        assert not scheduler.is_running

        scheduler.start()
        assert scheduler.is_running

        scheduler.stop()
        assert not scheduler.is_running

    def test_start_idempotent(self, collector):
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05, collector=collector)

        scheduler.start()
        thread1 = scheduler._thread

        scheduler.start()  # Should not create a new thread
        thread2 = scheduler._thread

        assert thread1 is thread2
        scheduler.stop()

    def test_daemon_thread(self, collector):
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05, collector=collector)

        scheduler.start()

        try:
            assert scheduler._thread is not None
            assert scheduler._thread.daemon is True
            assert scheduler._thread.name == "StatsScheduler"
        finally:
            scheduler.stop()

    def test_thread_refreshes_store(self, collector):
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05, collector=collector)

        scheduler.start()
        try:
            assert wait_for(lambda: scheduler.store.generation >= 1)
        finally:
            scheduler.stop()

    def test_no_refresh_after_stop(self, collector):
        """Test stopping keeps the last snapshot and ends refreshing."""
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05, collector=collector)
        scheduler.start()
        assert wait_for(lambda: scheduler.store.generation >= 1)

        scheduler.stop()
        last = scheduler.store.read()
        generation = scheduler.store.generation
        scheduler.notify_activity()
        time.sleep(0.2)

        assert scheduler.store.generation == generation
        assert scheduler.store.read() == last
        assert last[0] != RuntimeSnapshot.empty()

    def test_restart_while_draining_keeps_one_thread(self, caplog):
        """Test restarting during a stalled collection reuses the draining thread."""
        entered = threading.Event()

        class SlowCollector:
            def collect(self):
                entered.set()
                time.sleep(0.5)
                return RuntimeSnapshot.empty()

        def live_threads():
            return [t for t in threading.enumerate() if t.name == "StatsScheduler"]

        scheduler = StatsScheduler(SnapshotStore(), interval=0.01, collector=SlowCollector())
        scheduler.start()
        try:
            assert entered.wait(timeout=2.0)
            with caplog.at_level(logging.WARNING, logger="pystatsview.monitor"):
                scheduler.stop(timeout=0.05)
            assert "still busy" in caplog.text
            assert not scheduler.is_running

            scheduler.start()
            assert len(live_threads()) == 1
            assert scheduler.is_running

            # Old collection returns; the same thread carries on with the new run
            time.sleep(0.7)
            assert len(live_threads()) == 1
            assert scheduler.is_running
        finally:
            scheduler.stop(timeout=2.0)
        assert wait_for(lambda: not live_threads())

    def test_default_collector_gc_timer_lifecycle(self):
        scheduler = StatsScheduler(SnapshotStore(), interval=0.05)

        scheduler.start()
        try:
            assert scheduler._collector.gc_timer.installed
        finally:
            scheduler.stop()
        assert not scheduler._collector.gc_timer.installed


def test_end_to_end_idle_and_resume(collector):
    """
    Test sampling follows pulls at a 100ms interval.

    A pull triggers a refresh, silence stops refreshing once the activity
    window has passed, and a new pull resumes refreshing.
    """
    interval = 0.1
    scheduler = StatsScheduler(SnapshotStore(), interval=interval, collector=collector)
    scheduler.start()

    try:
        scheduler.notify_activity()
        generation = scheduler.store.generation
        assert wait_for(lambda: scheduler.store.generation > generation, timeout=0.5)

        # Let the activity window expire, then watch for 500ms
        time.sleep(ACTIVITY_WINDOW * interval + 2 * interval)
        idle_generation = scheduler.store.generation
        idle_snapshot = scheduler.store.read()
        time.sleep(0.5)
        assert scheduler.store.generation == idle_generation
        assert scheduler.store.read() == idle_snapshot

        scheduler.notify_activity()
        assert wait_for(lambda: scheduler.store.generation > idle_generation, timeout=0.5)
    finally:
        scheduler.stop()
