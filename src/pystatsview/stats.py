"""Runtime statistics collection for pystatsview."""

import gc
import sys
import threading
import time

import psutil

from pystatsview.models import RuntimeSnapshot


class GCTimer:
    """
    Measures time spent inside garbage collections.

    Hooks ``gc.callbacks`` and accumulates the wall time between each
    collection's "start" and "stop" phases.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()  # gc may fire while held
        self._started: float | None = None
        self._total = 0.0
        self._installed = False

    @property
    def total(self) -> float:
        """Total pause time in seconds."""
        with self._lock:
            return self._total

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            return
        gc.callbacks.append(self._callback)
        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        try:
            gc.callbacks.remove(self._callback)
        except ValueError:
            pass  # Removed by someone else
        self._installed = False

    def _callback(self, phase: str, info: dict) -> None:
        now = time.perf_counter()
        with self._lock:
            if phase == "start":
                self._started = now
            elif phase == "stop" and self._started is not None:
                self._total += now - self._started
                self._started = None


def count_stack_frames() -> int:
    """Total depth of every thread's current stack."""
    total = 0
    for frame in sys._current_frames().values():
        while frame is not None:
            total += 1
            frame = frame.f_back
    return total


class RuntimeCollector:
    """Reads interpreter and process statistics into a RuntimeSnapshot."""

    def __init__(self, gc_timer: GCTimer | None = None) -> None:
        self.gc_timer = gc_timer or GCTimer()
        self._process = psutil.Process()
        self._created = self._process.create_time()

    def collect(self) -> RuntimeSnapshot:
        """Collect a snapshot of the current runtime state."""
        mem = self._process.memory_info()
        pause = self.gc_timer.total
        uptime = max(time.time() - self._created, 1e-9)

        return RuntimeSnapshot(
            threads=threading.active_count(),
            heap_rss=mem.rss,
            heap_vms=mem.vms,
            stack_frames=count_stack_frames(),
            gc_count=sum(gen["collections"] for gen in gc.get_stats()),
            gc_pending=sum(gc.get_count()),
            gc_pause_total=pause,
            gc_cpu_fraction=round(pause / uptime, 6),
        )
