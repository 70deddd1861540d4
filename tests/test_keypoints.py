"""Tests for the keypoint data model."""

import numpy as np
import pytest

from motion_engine.keypoints import FaceLandmark, Keypoint, PoseResult, distance


class TestPoseResult:
    def test_coerces_to_float32(self):
        pose = PoseResult("hand", [[1, 2, 3], [4, 5, 6]])
        assert pose.points.dtype == np.float32
        assert pose.points.shape == (2, 3)

    def test_pads_2d_points(self):
        pose = PoseResult("face", np.array([[10.0, 20.0], [30.0, 40.0]]))
        assert pose.points.shape == (2, 3)
        assert pose.points[:, 2].tolist() == [0.0, 0.0]
        assert pose.xy.shape == (2, 2)

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            PoseResult("hand", np.zeros((21,)))

    def test_keypoint_access(self):
        pose = PoseResult("face", [[0, 0, 0], [5, 6, 7]])
        kp = pose.keypoint(FaceLandmark.NOSE_TIP)
        assert kp == Keypoint(id=1, x=5.0, y=6.0, z=7.0)
        assert len(pose.keypoints()) == len(pose) == 2

    def test_dict_roundtrip(self):
        pose = PoseResult("hand", np.arange(63, dtype=np.float32).reshape(21, 3), score=0.8)
        restored = PoseResult.from_dict(pose.to_dict())
        assert restored.kind == "hand"
        assert restored.score == pytest.approx(0.8)
        np.testing.assert_array_equal(restored.points, pose.points)

    def test_from_keypoints_sorts_by_id(self):
        pose = PoseResult.from_keypoints("hand", [Keypoint(1, 3, 4), Keypoint(0, 1, 2, 0.5)])
        assert pose.points.tolist() == [[1, 2, 0.5], [3, 4, 0]]


def test_distance_ignores_depth():
    assert distance(np.array([0, 0, 100]), np.array([3, 4, -50])) == pytest.approx(5.0)
