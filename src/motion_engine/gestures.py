"""Per-frame hand gesture classifiers over pixel-space landmarks.

Every classifier is a pure function of one hand's 21 keypoints. Nothing is
remembered between frames; temporal logic lives in the detectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from motion_engine.config import GestureConfig
from motion_engine.keypoints import HandLandmark as H
from motion_engine.keypoints import distance


class HandGesture(Enum):
    NONE = "none"
    PINCH = "pinch"
    FIST = "fist"
    FLAT = "flat"


@dataclass
class HandReading:
    """Classification of one hand in one frame."""
    gesture: HandGesture
    wrist: tuple[float, float]
    anchor: Optional[tuple[float, float]] = None  # set only while pinching

    @property
    def is_flat(self) -> bool:
        return self.gesture == HandGesture.FLAT

    @property
    def is_pinching(self) -> bool:
        return self.gesture == HandGesture.PINCH


_FINGERS = [
    # (tip, mcp) for index, middle, ring
    (H.INDEX_TIP, H.INDEX_MCP),
    (H.MIDDLE_TIP, H.MIDDLE_MCP),
    (H.RING_TIP, H.RING_MCP),
]


def palm_center(landmarks: np.ndarray) -> np.ndarray:
    """Mean of the wrist and the four finger MCP joints."""
    return np.asarray(landmarks)[list(H.PALM), :2].mean(axis=0)


def pinch_threshold(landmarks: np.ndarray, config: Optional[GestureConfig] = None) -> float:
    """Reach-relative pinch distance, capped at a fixed pixel value."""
    cfg = config or GestureConfig()
    reach = distance(landmarks[H.THUMB_IP], landmarks[H.INDEX_PIP])
    return min(cfg.pinch_cap, reach * cfg.pinch_ratio)


def is_pinching(landmarks: np.ndarray, config: Optional[GestureConfig] = None) -> bool:
    """Thumb tip and index tip closer than the pinch threshold."""
    lm = np.asarray(landmarks)
    gap = distance(lm[H.THUMB_TIP], lm[H.INDEX_TIP])
    return gap < pinch_threshold(lm, config)


def pinch_anchor(landmarks: np.ndarray) -> tuple[float, float]:
    """Midpoint of the thumb tip and index tip."""
    lm = np.asarray(landmarks)
    mid = (lm[H.THUMB_TIP, :2] + lm[H.INDEX_TIP, :2]) / 2.0
    return float(mid[0]), float(mid[1])


def is_closed_fist(landmarks: np.ndarray, config: Optional[GestureConfig] = None) -> bool:
    """All five fingertips pulled in around the palm center."""
    cfg = config or GestureConfig()
    lm = np.asarray(landmarks)
    center = palm_center(lm)

    if distance(lm[H.THUMB_TIP], center) >= cfg.fist_thumb_radius:
        return False
    for tip in (H.INDEX_TIP, H.MIDDLE_TIP, H.RING_TIP, H.PINKY_TIP):
        if distance(lm[tip], center) >= cfg.fist_finger_radius:
            return False
    return True


def is_flat_hand(landmarks: np.ndarray, config: Optional[GestureConfig] = None) -> bool:
    """Index, middle and ring extended with their tips level with each other."""
    cfg = config or GestureConfig()
    lm = np.asarray(landmarks)

    for tip, mcp in _FINGERS:
        if distance(lm[tip], lm[mcp]) <= cfg.flat_min_extension:
            return False

    tip_ys = [float(lm[tip, 1]) for tip, _ in _FINGERS]
    return max(tip_ys) - min(tip_ys) <= cfg.flat_y_tolerance


def classify_hand(landmarks: np.ndarray, config: Optional[GestureConfig] = None) -> HandReading:
    """Classify a hand with fixed precedence: fist, then flat, then pinch.

    A fist can also satisfy the pinch test, so it is checked first. A flat
    hand suppresses pinch evaluation for the frame.
    """
    lm = np.asarray(landmarks)
    wrist = (float(lm[H.WRIST, 0]), float(lm[H.WRIST, 1]))

    if is_closed_fist(lm, config):
        return HandReading(HandGesture.FIST, wrist)
    if is_flat_hand(lm, config):
        return HandReading(HandGesture.FLAT, wrist)
    if is_pinching(lm, config):
        return HandReading(HandGesture.PINCH, wrist, anchor=pinch_anchor(lm))
    return HandReading(HandGesture.NONE, wrist)
