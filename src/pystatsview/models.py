"""Data models for pystatsview."""

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class RuntimeSnapshot:
    """Immutable snapshot of interpreter runtime statistics."""

    threads: int
    heap_rss: int  # Bytes
    heap_vms: int  # Bytes
    stack_frames: int  # Frames across all threads
    gc_count: int
    gc_pending: int
    gc_pause_total: float  # Seconds
    gc_cpu_fraction: float  # 0.0 - 1.0

    @classmethod
    def empty(cls) -> "RuntimeSnapshot":
        """Snapshot installed before the first refresh."""
        return cls(
            threads=0,
            heap_rss=0,
            heap_vms=0,
            stack_frames=0,
            gc_count=0,
            gc_pending=0,
            gc_pause_total=0.0,
            gc_cpu_fraction=0.0,
        )


@dataclass(slots=True, frozen=True)
class MetricPoint:
    """One data point served per pull."""

    values: list[float] = field(default_factory=list)
    time: str = ""

    def to_dict(self) -> dict:
        """Wire representation of the point."""
        return {"values": list(self.values), "time": self.time}
