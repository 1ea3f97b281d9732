"""Metric sources served by the dashboard.

A metric source owns one chart and one route. Serving a source extends the
scheduler's activity deadline, reads the shared snapshot, and returns one
data point labelled with the snapshot's sample time.
"""

import threading
import time
from abc import ABC, abstractmethod

from pystatsview.charts import ChartSpec
from pystatsview.config import Settings, get_settings
from pystatsview.errors import SourceNotBoundError
from pystatsview.models import MetricPoint, RuntimeSnapshot
from pystatsview.monitor import StatsScheduler

MIB = 1024 * 1024


def fixed_precision(value: float, places: int) -> float:
    return round(value, places)


def format_sample_time(sampled_at: float, fmt: str) -> str:
    """Format a Unix timestamp with a strftime pattern (local time)."""
    return time.strftime(fmt, time.localtime(sampled_at))


class MetricSource(ABC):
    """Base class for a named extractor of one statistic family."""

    name: str = ""
    title: str = ""
    series: tuple[str, ...] = ()
    y_axis: str = ""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self._scheduler: StatsScheduler | None = None

    @property
    def settings(self) -> Settings:
        return self._settings if self._settings is not None else get_settings()

    @property
    def scheduler(self) -> StatsScheduler | None:
        return self._scheduler

    def bind(self, scheduler: StatsScheduler, settings: Settings | None = None) -> None:
        """Attach the shared scheduler (and optionally settings) to this source."""
        self._scheduler = scheduler
        if settings is not None:
            self._settings = settings

    def chart(self, index: int = 0) -> ChartSpec:
        return ChartSpec(
            route=self.name,
            title=self.title,
            series=self.series,
            y_axis=self.y_axis,
            index=index,
        )

    def serve(self) -> MetricPoint:
        """Produce one data point for a pull."""
        scheduler = self._require_scheduler()
        scheduler.notify_activity()
        snapshot, sampled_at = scheduler.store.read()
        return MetricPoint(
            values=self.extract(snapshot),
            time=format_sample_time(sampled_at, self.settings.time_format),
        )

    @abstractmethod
    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        """Pull this source's values out of a snapshot."""

    def _require_scheduler(self) -> StatsScheduler:
        if self._scheduler is None:
            raise SourceNotBoundError(f"metric source {self.name!r} is not bound to a scheduler")
        return self._scheduler


class ThreadsSource(MetricSource):
    """Number of live Python threads."""

    name = "threads"
    title = "Threads"
    series = ("Threads",)
    y_axis = "Num"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [float(snapshot.threads)]


class HeapSource(MetricSource):
    """Resident memory of the process in MiB."""

    name = "heap"
    title = "Heap"
    series = ("HeapRSS",)
    y_axis = "Size (MiB)"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [fixed_precision(snapshot.heap_rss / MIB, 2)]


class StackSource(MetricSource):
    """Total frame depth across all threads."""

    name = "stack"
    title = "Stack"
    series = ("Frames",)
    y_axis = "Num"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [float(snapshot.stack_frames)]


class GCNumSource(MetricSource):
    """Collections run by the garbage collector."""

    name = "gcnum"
    title = "GC Number"
    series = ("GcNum",)
    y_axis = "Num"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [float(snapshot.gc_count)]


class GCPauseSource(MetricSource):
    """Total time spent in collections, in milliseconds."""

    name = "gcpause"
    title = "GC Pause"
    series = ("PauseTotal",)
    y_axis = "Time (ms)"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [fixed_precision(snapshot.gc_pause_total * 1000.0, 2)]


class GCCPUFractionSource(MetricSource):
    """Share of process lifetime spent in collections."""

    name = "gccpufraction"
    title = "GC CPUFraction"
    series = ("Fraction",)
    y_axis = "Percent"

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        return [fixed_precision(snapshot.gc_cpu_fraction, 6)]


class CyclicCounterSource(MetricSource):
    """
    Demo source counting 0..9 repeatedly, one step per pull.

    Ignores the snapshot but still extends the activity deadline and carries
    the shared sample time.
    """

    name = "static"
    title = "Static count"
    series = ("Count",)
    y_axis = "Num"

    def __init__(self, settings: Settings | None = None, period: int = 10) -> None:
        super().__init__(settings)
        self._period = period
        self._count = 0
        self._lock = threading.Lock()

    def extract(self, snapshot: RuntimeSnapshot) -> list[float]:
        with self._lock:
            value = self._count % self._period
            self._count += 1
        return [float(value)]
