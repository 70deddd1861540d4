"""Rejects hand detections that are really the hand model firing on a face.

At comparable confidence the hand model sometimes locks onto facial
features. Those detections sit where the face usually is and are much more
compact than a real hand, so a detection is discarded only when both hold.
The bounds are heuristics; validate them per camera.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from motion_engine.config import RegionConfig
from motion_engine.keypoints import PoseResult


def hand_spread(points: np.ndarray) -> float:
    """Mean distance between consecutive keypoints, in pixels."""
    pts = np.asarray(points)[:, :2]
    if len(pts) < 2:
        return 0.0
    return float(np.mean(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def in_face_zone(
    x: float,
    y: float,
    frame_width: float,
    frame_height: float,
    config: Optional[RegionConfig] = None,
) -> bool:
    """True if (x, y) is in the upper band and central column of the frame."""
    cfg = config or RegionConfig()
    side = (1.0 - cfg.face_zone_width) / 2.0
    left = frame_width * side
    right = frame_width * (1.0 - side)
    return y < frame_height * cfg.face_zone_top and left <= x <= right


def is_face_false_positive(
    hand: PoseResult | np.ndarray,
    frame_width: float,
    frame_height: float,
    config: Optional[RegionConfig] = None,
) -> bool:
    """Return True if a hand detection should be discarded."""
    cfg = config or RegionConfig()
    points = hand.points if isinstance(hand, PoseResult) else np.asarray(hand)
    if len(points) == 0:
        return True

    anchor = points[cfg.anchor_index]
    if not in_face_zone(float(anchor[0]), float(anchor[1]), frame_width, frame_height, cfg):
        return False
    return hand_spread(points) < cfg.min_spread
