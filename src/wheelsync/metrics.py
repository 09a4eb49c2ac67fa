"""Timing and counting of recreation passes."""

from __future__ import annotations

import time
from collections import deque
from datetime import datetime, timezone

METRICS_WINDOW = 100


class PerformanceMetrics:
    """Recreation counters plus a bounded window of recent pass durations (seconds)."""

    def __init__(self, window: int = METRICS_WINDOW) -> None:
        self.window = window
        self.reset()

    def reset(self) -> None:
        self.recreation_count = 0
        self.batched_recreation_count = 0
        self.last_recreation_time: datetime | None = None
        self.total_recreation_time = 0.0
        self.durations: deque[float] = deque(maxlen=self.window)

    def record_recreation(self, duration: float) -> None:
        self.recreation_count += 1
        self.last_recreation_time = datetime.now(timezone.utc)
        self.total_recreation_time += duration
        self.durations.append(duration)

    def record_batched_recreation(self) -> None:
        self.batched_recreation_count += 1

    @property
    def average_recreation_ms(self) -> float:
        if not self.durations:
            return 0.0
        return sum(self.durations) / len(self.durations) * 1000

    def keep_recent(self, count: int) -> None:
        """Drop all but the most recent `count` durations."""
        recent = list(self.durations)[-count:] if count > 0 else []
        self.durations.clear()
        self.durations.extend(recent)

    def timed(self):
        return _Timer(self)


class _Timer:
    __slots__ = ("_metrics", "_start")

    def __init__(self, metrics: PerformanceMetrics) -> None:
        self._metrics = metrics
        self._start = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info) -> None:
        self._metrics.record_recreation(time.perf_counter() - self._start)
