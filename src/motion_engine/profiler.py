"""Per-stage timing for the frame loop.

    profiler = FrameProfiler()
    with profiler.stage("face_estimation"):
        face = await source.estimate_face(frame)
    profiler.summary()["face_estimation"]["p95_ms"]
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Iterator, Optional

import numpy as np


@dataclass
class StageStats:
    name: str
    avg_ms: float
    min_ms: float
    max_ms: float
    p95_ms: float
    call_count: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("name")
        return {k: round(v, 3) if isinstance(v, float) else v for k, v in data.items()}


class FrameProfiler:
    """Rolling window of per-stage latencies in milliseconds."""

    def __init__(self, window_size: int = 120, enabled: bool = True):
        self.window_size = window_size
        self.enabled = enabled
        self._timings: defaultdict[str, deque[float]] = defaultdict(
            lambda: deque(maxlen=self.window_size)
        )
        self._counts: defaultdict[str, int] = defaultdict(int)

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._timings[name].append((time.perf_counter() - t0) * 1000.0)
            self._counts[name] += 1

    def get_stage_stats(self, name: str) -> Optional[StageStats]:
        timings = self._timings.get(name)
        if not timings:
            return None
        arr = np.fromiter(timings, dtype=np.float64)
        return StageStats(
            name=name,
            avg_ms=float(arr.mean()),
            min_ms=float(arr.min()),
            max_ms=float(arr.max()),
            p95_ms=float(np.percentile(arr, 95)),
            call_count=self._counts[name],
        )

    def summary(self) -> dict[str, dict]:
        """Stats for every stage timed since the last reset, in first-seen order."""
        stats = (self.get_stage_stats(name) for name in self._timings)
        return {s.name: s.to_dict() for s in stats if s is not None}

    def reset(self):
        self._timings.clear()
        self._counts.clear()
