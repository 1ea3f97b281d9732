"""Sampling scheduler for pystatsview."""

import logging
import threading
import time
from typing import Callable, Protocol

from pystatsview.models import RuntimeSnapshot
from pystatsview.stats import RuntimeCollector

logger = logging.getLogger(__name__)

# Each pull keeps sampling alive for this many intervals.
ACTIVITY_WINDOW = 2


class Collector(Protocol):
    def collect(self) -> RuntimeSnapshot: ...


class SnapshotStore:
    """
    Latest runtime snapshot shared between the scheduler and metric sources.

    The snapshot and its sample time are swapped together under one lock, so
    readers always get a matching, fully populated pair.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = RuntimeSnapshot.empty()
        self._sampled_at = 0.0
        self._generation = 0

    def install(self, snapshot: RuntimeSnapshot, sampled_at: float) -> None:
        """Replace the current snapshot (writer side)."""
        with self._lock:
            self._snapshot = snapshot
            self._sampled_at = sampled_at
            self._generation += 1

    def read(self) -> tuple[RuntimeSnapshot, float]:
        """Return the current snapshot and its Unix sample time (reader side)."""
        with self._lock:
            return self._snapshot, self._sampled_at

    @property
    def sampled_at(self) -> float:
        with self._lock:
            return self._sampled_at

    @property
    def generation(self) -> int:
        """Number of snapshots installed so far."""
        with self._lock:
            return self._generation


class StatsScheduler:
    """
    Refreshes a SnapshotStore on a fixed interval while consumers are active.

    Runs in a separate daemon thread. Every pull calls notify_activity(),
    which pushes the activity deadline to now + 2 intervals; ticks past the
    deadline skip the collection entirely.
    """

    def __init__(
        self,
        store: SnapshotStore,
        interval: float = 2.0,
        collector: Collector | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the StatsScheduler.

        Args:
            store: Store refreshed on each active tick.
            interval: Seconds between ticks; also the activity decay unit.
            collector: Statistics reader. Defaults to a RuntimeCollector.
            clock: Monotonic clock used for the activity deadline.
            wall_clock: Clock used to stamp the sample time.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.store = store
        self._interval = interval
        self._collector = collector or RuntimeCollector()
        self._clock = clock
        self._wall_clock = wall_clock
        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._deadline_lock = threading.Lock()
        self._deadline = clock() + ACTIVITY_WINDOW * interval

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def deadline(self) -> float:
        """Monotonic time until which refreshes are permitted."""
        with self._deadline_lock:
            return self._deadline

    @property
    def is_running(self) -> bool:
        """Check if the scheduler thread is running and not stopping."""
        with self._lifecycle_lock:
            return self._thread is not None and not self._stop_event.is_set()

    def notify_activity(self) -> None:
        """Extend the activity deadline to now + 2 intervals."""
        deadline = self._clock() + ACTIVITY_WINDOW * self._interval
        with self._deadline_lock:
            if deadline > self._deadline:
                self._deadline = deadline

    def is_active(self, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        return now <= self.deadline

    def refresh(self) -> bool:
        """
        Run one tick.

        Returns True if a new snapshot was installed. Idle ticks and ticks
        whose collection failed leave the store untouched.
        """
        if not self.is_active():
            return False

        try:
            snapshot = self._collector.collect()
        except Exception:
            logger.exception("Runtime stats collection failed; keeping previous snapshot")
            return False

        # Sample time never goes backwards even if the wall clock does
        sampled_at = max(self._wall_clock(), self.store.sampled_at)
        self.store.install(snapshot, sampled_at)
        return True

    def start(self) -> None:
        """
        Start the scheduler thread.

        If a previous run is still finishing a stalled collection, that
        thread picks up the new run instead of a second one being spawned.
        """
        gc_timer = getattr(self._collector, "gc_timer", None)
        if gc_timer is not None:
            gc_timer.install()

        with self._lifecycle_lock:
            if self._thread is not None:
                if self._stop_event.is_set():
                    self._stop_event = threading.Event()
                    logger.info("Stats scheduler resumed on its draining thread")
                return

            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._poll_loop,
                daemon=True,
                name="StatsScheduler",
            )
            self._thread.start()
        logger.info("Stats scheduler started (interval %.3fs)", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the scheduler thread.

        The store keeps its last snapshot. A thread still inside a collection
        when the timeout expires keeps its reference and exits once the
        collection returns.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        with self._lifecycle_lock:
            self._stop_event.set()
            thread = self._thread

        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Stats scheduler still busy after %.3fs; it will exit after the current tick", timeout or 0.0)
            else:
                logger.info("Stats scheduler stopped")

        gc_timer = getattr(self._collector, "gc_timer", None)
        if gc_timer is not None:
            gc_timer.uninstall()

    def _poll_loop(self) -> None:
        """Main loop running in the background thread."""
        while True:
            with self._lifecycle_lock:
                stop_event = self._stop_event

            # wait() returns True once stop is requested, so no tick runs after it
            if not stop_event.wait(timeout=self._interval):
                if not self.refresh():
                    logger.debug("Tick skipped")
                continue

            with self._lifecycle_lock:
                # start() may have begun a new run while this one was stopping
                if self._stop_event.is_set():
                    self._thread = None
                    return
