"""Tests for the face false-positive region filter."""

import numpy as np

from motion_engine.config import RegionConfig
from motion_engine.keypoints import PoseResult
from motion_engine.region import hand_spread, in_face_zone, is_face_false_positive

W, H = 640, 480


def make_compact_hand(x, y, step=2.0):
    """21 points packed into a few pixels, like a hand model firing on a face."""
    pts = np.array([[x + (i % 5) * step, y + (i // 5) * step, 0] for i in range(21)], dtype=np.float32)
    return PoseResult(kind="hand", points=pts)


def make_wide_hand(x, y):
    pts = np.array([[x + i * 20, y - i * 10, 0] for i in range(21)], dtype=np.float32)
    return PoseResult(kind="hand", points=pts)


class TestFaceZone:
    def test_center_top_is_face_zone(self):
        assert in_face_zone(320, 100, W, H)

    def test_below_band(self):
        # 0.4 * 480 = 192
        assert not in_face_zone(320, 192, W, H)
        assert in_face_zone(320, 191.9, W, H)

    def test_side_columns(self):
        # central 60% of 640 spans x = 128..512
        assert not in_face_zone(100, 100, W, H)
        assert not in_face_zone(600, 100, W, H)
        assert in_face_zone(130, 100, W, H)

    def test_custom_bounds(self):
        cfg = RegionConfig(face_zone_top=0.8, face_zone_width=1.0)
        assert in_face_zone(10, 350, W, H, cfg)


class TestSpread:
    def test_spread(self):
        pts = np.array([[0, 0], [3, 4], [6, 8]], dtype=np.float32)
        assert hand_spread(pts) == 5.0

    def test_single_point(self):
        assert hand_spread(np.zeros((1, 3))) == 0.0


class TestFalsePositive:
    def test_compact_hand_on_face_rejected(self):
        assert is_face_false_positive(make_compact_hand(300, 100), W, H)

    def test_compact_hand_low_in_frame_kept(self):
        assert not is_face_false_positive(make_compact_hand(300, 400), W, H)

    def test_wide_hand_on_face_kept(self):
        assert not is_face_false_positive(make_wide_hand(200, 150), W, H)

    def test_accepts_raw_array(self):
        assert is_face_false_positive(make_compact_hand(300, 100).points, W, H)

    def test_empty_detection_rejected(self):
        assert is_face_false_positive(np.zeros((0, 3)), W, H)

    def test_min_spread_configurable(self):
        cfg = RegionConfig(min_spread=1.0)
        assert not is_face_false_positive(make_compact_hand(300, 100), W, H, cfg)
