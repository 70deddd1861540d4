"""Tests for session metrics and the Prometheus exporter."""

import threading

import pytest

from motion_engine.metrics import (
    MILES_PER_BOB,
    MetricsCollector,
    bobs_per_minute,
    estimate_distance,
    format_workout_time,
    prune_window,
)


class TestWindow:
    def test_prune_is_strict(self):
        assert prune_window([0.0, 10.0, 70.0], now=69.0) == (10.0, 70.0)
        assert prune_window([10.0, 70.0], now=70.0, window=60.0) == (70.0,)

    def test_bobs_per_minute(self):
        stamps = [1.0, 30.0, 59.0, 61.0]
        assert bobs_per_minute(stamps, now=60.5) == 4
        assert bobs_per_minute(stamps, now=61.0) == 3  # 1.0 is exactly 60s old
        assert bobs_per_minute(stamps, now=91.0) == 2
        assert bobs_per_minute([], now=5.0) == 0


class TestDistance:
    def test_per_bob(self):
        assert estimate_distance(0) == 0.0
        assert estimate_distance(1000) == pytest.approx(0.947)
        assert estimate_distance(10, miles_per_bob=0.001) == pytest.approx(0.01)
        assert MILES_PER_BOB == 0.000947


class TestWorkoutTime:
    @pytest.mark.parametrize("seconds,text", [(0, "0:00"), (59.9, "0:59"), (125, "2:05"), (3600, "60:00"), (-3, "0:00")])
    def test_format(self, seconds, text):
        assert format_workout_time(seconds) == text


class TestMetricsCollector:
    def test_counters(self):
        m = MetricsCollector()
        m.record_frame(0.01, True)
        m.record_frame(0.02, False)
        m.record_failure("face")
        m.record_failure("face")
        m.record_failure("hand")
        m.record_collected("acorn")
        assert m.frames_total == 2
        assert m.failures == {"face": 2, "hand": 1}
        assert m.collected == {"acorn": 1}

    def test_render(self):
        m = MetricsCollector()
        m.record_frame(0.012, True)
        m.record_bob(12)
        m.record_slash()
        m.record_collected("acorn")
        m.record_miss()
        m.record_failure("hand")
        text = m.render()

        assert "# TYPE motion_engine_frames_total counter" in text
        assert "motion_engine_frames_total 1" in text
        assert "motion_engine_bobs_total 1" in text
        assert "motion_engine_bobs_per_minute 12" in text
        assert "motion_engine_slashes_total 1" in text
        assert 'motion_engine_collected_total{kind="acorn"} 1' in text
        assert "motion_engine_misses_total 1" in text
        assert 'motion_engine_detection_failures_total{subject="hand"} 1' in text
        assert 'motion_engine_frame_latency_seconds_bucket{le="0.016"} 1' in text
        assert 'motion_engine_frame_latency_seconds_bucket{le="0.01"} 0' in text
        assert "motion_engine_frame_latency_seconds_count 1" in text
        assert text.endswith("\n")

    def test_histogram_cumulative(self):
        m = MetricsCollector()
        for latency in (0.001, 0.02, 0.2, 5.0):
            m.record_frame(latency, True)
        text = m.render()
        assert 'motion_engine_frame_latency_seconds_bucket{le="0.005"} 1' in text
        assert 'motion_engine_frame_latency_seconds_bucket{le="0.033"} 2' in text
        assert 'motion_engine_frame_latency_seconds_bucket{le="0.25"} 3' in text
        assert 'motion_engine_frame_latency_seconds_bucket{le="+Inf"} 4' in text

    def test_thread_safety(self):
        m = MetricsCollector()

        def worker():
            for _ in range(1000):
                m.record_frame(0.01, True)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert m.frames_total == 4000
