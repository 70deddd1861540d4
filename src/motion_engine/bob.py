"""Head-bob detection from the vertical motion of a facial reference point.

Each frame the reference point's y is compared with the previous frame's.
Deltas inside a fixed dead zone are ignored; outside it the frame is UP or
DOWN. A bob is counted on every reversal of that direction, so one full
up-down-up oscillation counts as two bobs. Distance-per-bob constants are
calibrated against this convention.

The detector is a pure transition over an immutable state:

    state = BobState()
    state, events = step_bob(state, nose_y, timestamp)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from motion_engine.config import BobConfig
from motion_engine.events import BobEvent, EngineEvent, MovementEvent
from motion_engine.keypoints import PoseResult
from motion_engine.metrics import bobs_per_minute, prune_window


class Direction(Enum):
    NONE = "none"
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class BobState:
    previous_reference_y: Optional[float] = None
    last_direction: Direction = Direction.NONE
    bob_count: int = 0
    bob_timestamps: tuple[float, ...] = ()
    movement_history: tuple[float, ...] = ()


def classify_direction(delta: float, threshold: float) -> Direction:
    """Image y grows downward, so a positive delta is the head moving down."""
    if delta > threshold:
        return Direction.DOWN
    if delta < -threshold:
        return Direction.UP
    return Direction.NONE


def step_bob(
    state: BobState,
    reference_y: Optional[float],
    timestamp: float,
    config: Optional[BobConfig] = None,
) -> tuple[BobState, list[EngineEvent]]:
    """Advance the detector by one frame.

    `reference_y` is None when no face was detected; the baseline is dropped
    and two consecutive detections are needed before deltas resume.
    """
    cfg = config or BobConfig()

    if reference_y is None:
        return replace(state, previous_reference_y=None), []

    if state.previous_reference_y is None:
        return replace(state, previous_reference_y=reference_y), []

    delta = reference_y - state.previous_reference_y
    history = (state.movement_history + (delta,))[-cfg.movement_history:]
    events: list[EngineEvent] = [
        MovementEvent(magnitude=abs(delta), raw_delta=delta, timestamp=timestamp)
    ]

    direction = classify_direction(delta, cfg.threshold)
    count = state.bob_count
    timestamps = state.bob_timestamps
    last = state.last_direction

    if direction is not Direction.NONE:
        if last is not Direction.NONE and direction is not last:
            count += 1
            timestamps = prune_window(timestamps + (timestamp,), timestamp, cfg.window_seconds)
            events.append(BobEvent(total_count=count, timestamp=timestamp))
        last = direction

    new_state = BobState(
        previous_reference_y=reference_y,
        last_direction=last,
        bob_count=count,
        bob_timestamps=timestamps,
        movement_history=history,
    )
    return new_state, events


def reset_bob() -> BobState:
    return BobState()


def reference_y(face: PoseResult, config: Optional[BobConfig] = None) -> float:
    cfg = config or BobConfig()
    return float(face.points[cfg.reference_index, 1])


class BobDetector:
    """Holds the current BobState for the frame loop."""

    def __init__(self, config: Optional[BobConfig] = None):
        self.config = config or BobConfig()
        self.state = BobState()

    def update(self, face: Optional[PoseResult], timestamp: float) -> list[EngineEvent]:
        y = reference_y(face, self.config) if face is not None else None
        self.state, events = step_bob(self.state, y, timestamp, self.config)
        return events

    def bobs_per_minute(self, now: float) -> int:
        return bobs_per_minute(self.state.bob_timestamps, now, self.config.window_seconds)

    def average_movement(self) -> float:
        """Mean absolute frame-to-frame delta over the recent history."""
        history = self.state.movement_history
        if not history:
            return 0.0
        return sum(abs(d) for d in history) / len(history)

    @property
    def bob_count(self) -> int:
        return self.state.bob_count

    def reset(self):
        self.state = reset_bob()
