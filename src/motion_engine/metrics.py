"""Session metrics: windowed bob rate, distance estimate, Prometheus export.

The rate and distance helpers are pure and recomputed on demand. The
`MetricsCollector` keeps running counters for the frame loop and renders
them in Prometheus text exposition format with no external dependency.

Tracked metrics:
- motion_engine_frames_total (counter)
- motion_engine_detection_failures_total (counter, by subject)
- motion_engine_bobs_total (counter)
- motion_engine_slashes_total (counter)
- motion_engine_collected_total (counter, by kind)
- motion_engine_misses_total (counter)
- motion_engine_frame_latency_seconds (histogram)
- motion_engine_face_detection_rate (gauge)
- motion_engine_bobs_per_minute (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Iterable

DEFAULT_WINDOW_SECONDS = 60.0
MILES_PER_BOB = 0.000947


def prune_window(
    timestamps: Iterable[float], now: float, window: float = DEFAULT_WINDOW_SECONDS
) -> tuple[float, ...]:
    """Keep only timestamps strictly newer than now - window."""
    cutoff = now - window
    return tuple(t for t in timestamps if t > cutoff)


def bobs_per_minute(
    timestamps: Iterable[float], now: float, window: float = DEFAULT_WINDOW_SECONDS
) -> int:
    """Count of bob timestamps in the trailing window.

    A timestamp exactly at now - window is outside the window.
    """
    return len(prune_window(timestamps, now, window))


def estimate_distance(bob_count: int, miles_per_bob: float = MILES_PER_BOB) -> float:
    """Stride-length heuristic: miles covered for a given bob count."""
    return bob_count * miles_per_bob


def format_workout_time(seconds: float) -> str:
    """Render elapsed seconds as M:SS."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


class _Histogram:
    """Cumulative-bucket histogram."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [f"# HELP {name} {help_text}", f"# TYPE {name} histogram"]
        with self._lock:
            cumulative = 0
            for b, n in zip(self.buckets, self.bucket_counts):
                cumulative += n
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


def _metric(name: str, kind: str, help_text: str) -> list[str]:
    return [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}"]


class MetricsCollector:
    """Running counters for one tracking session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frames_total = 0
        self._failures: Counter = Counter()
        self._bobs_total = 0
        self._slashes_total = 0
        self._collected: Counter = Counter()
        self._misses_total = 0
        self._face_detection_rate = 0.0
        self._bobs_per_minute = 0
        self._latency = _Histogram([0.005, 0.010, 0.016, 0.033, 0.050, 0.100, 0.250])
        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, face_detected: bool):
        with self._lock:
            self._frames_total += 1
            rate = 1.0 if face_detected else 0.0
            self._face_detection_rate = 0.95 * self._face_detection_rate + 0.05 * rate
        self._latency.observe(latency_seconds)

    def record_failure(self, subject: str):
        with self._lock:
            self._failures[subject] += 1

    def record_bob(self, bobs_per_minute: int):
        with self._lock:
            self._bobs_total += 1
            self._bobs_per_minute = bobs_per_minute

    def record_slash(self):
        with self._lock:
            self._slashes_total += 1

    def record_collected(self, kind: str):
        with self._lock:
            self._collected[kind] += 1

    def record_miss(self):
        with self._lock:
            self._misses_total += 1

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def failures(self) -> dict[str, int]:
        with self._lock:
            return dict(self._failures)

    @property
    def collected(self) -> dict[str, int]:
        with self._lock:
            return dict(self._collected)

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []
        uptime = time.time() - self._start_time

        with self._lock:
            lines += _metric("motion_engine_uptime_seconds", "gauge", "Time since session start")
            lines.append(f"motion_engine_uptime_seconds {uptime:.1f}")

            lines += _metric("motion_engine_frames_total", "counter", "Frames processed")
            lines.append(f"motion_engine_frames_total {self._frames_total}")

            lines += _metric(
                "motion_engine_detection_failures_total", "counter",
                "Per-frame keypoint estimation failures",
            )
            for subject, count in sorted(self._failures.items()):
                lines.append(f'motion_engine_detection_failures_total{{subject="{subject}"}} {count}')

            lines += _metric("motion_engine_bobs_total", "counter", "Head bobs counted")
            lines.append(f"motion_engine_bobs_total {self._bobs_total}")

            lines += _metric("motion_engine_bobs_per_minute", "gauge", "Bobs in the trailing minute")
            lines.append(f"motion_engine_bobs_per_minute {self._bobs_per_minute}")

            lines += _metric("motion_engine_slashes_total", "counter", "Slash gestures detected")
            lines.append(f"motion_engine_slashes_total {self._slashes_total}")

            lines += _metric("motion_engine_collected_total", "counter", "Collectibles hit, by kind")
            for kind, count in sorted(self._collected.items()):
                lines.append(f'motion_engine_collected_total{{kind="{kind}"}} {count}')

            lines += _metric("motion_engine_misses_total", "counter", "Throttled miss notifications")
            lines.append(f"motion_engine_misses_total {self._misses_total}")

            lines += _metric(
                "motion_engine_face_detection_rate", "gauge",
                "Exponential moving average of face detection",
            )
            lines.append(f"motion_engine_face_detection_rate {self._face_detection_rate:.4f}")

        lines += self._latency.render(
            "motion_engine_frame_latency_seconds", "Frame processing latency in seconds"
        )
        return "\n".join(lines) + "\n"
