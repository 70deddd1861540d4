"""Keypoint data model and landmark topology constants.

Pose results arrive in frame-pixel space. Face results follow the 468-point
MediaPipe Face Mesh topology; hand results follow the 21-point MediaPipe
Hands topology.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


class HandLandmark:
    """MediaPipe hand landmark indices."""
    WRIST = 0
    THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
    INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
    MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
    RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
    PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

    FINGER_TIPS = (THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)
    PALM = (WRIST, INDEX_MCP, MIDDLE_MCP, RING_MCP, PINKY_MCP)


class FaceLandmark:
    """MediaPipe Face Mesh indices used by the engine."""
    NOSE_TIP = 1
    FOREHEAD = 10
    CHIN = 152


NUM_HAND_LANDMARKS = 21
NUM_FACE_LANDMARKS = 468


@dataclass(frozen=True)
class Keypoint:
    """A single named position on a tracked subject."""
    id: int
    x: float
    y: float
    z: Optional[float] = None


@dataclass
class PoseResult:
    """All keypoints for one detected subject in one frame.

    `points` has shape (N, 3) in frame-pixel space. The z column is the
    model's relative depth and may be zero when the source has none.
    """
    kind: str  # "face" or "hand"
    points: np.ndarray
    score: float = 1.0

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=np.float32)
        if pts.ndim != 2 or pts.shape[1] not in (2, 3):
            raise ValueError(f"points must have shape (N, 2) or (N, 3), got {pts.shape}")
        if pts.shape[1] == 2:
            pts = np.column_stack([pts, np.zeros(len(pts), dtype=np.float32)])
        self.points = pts

    def __len__(self) -> int:
        return len(self.points)

    def keypoint(self, index: int) -> Keypoint:
        x, y, z = self.points[index]
        return Keypoint(id=index, x=float(x), y=float(y), z=float(z))

    def keypoints(self) -> list[Keypoint]:
        return [self.keypoint(i) for i in range(len(self.points))]

    @property
    def xy(self) -> np.ndarray:
        """2D view of the points, shape (N, 2)."""
        return self.points[:, :2]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "score": self.score,
            "points": self.points.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PoseResult:
        return cls(
            kind=data["kind"],
            points=np.array(data["points"], dtype=np.float32),
            score=data.get("score", 1.0),
        )

    @classmethod
    def from_keypoints(cls, kind: str, keypoints: list[Keypoint], score: float = 1.0) -> PoseResult:
        ordered = sorted(keypoints, key=lambda k: k.id)
        pts = [[k.x, k.y, k.z if k.z is not None else 0.0] for k in ordered]
        return cls(kind=kind, points=np.array(pts, dtype=np.float32), score=score)


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance in the image plane."""
    return float(np.linalg.norm(np.asarray(a)[:2] - np.asarray(b)[:2]))
