"""Slash detection: a fast straight sweep of a flat hand.

Only runs while the hand is classified flat. Wrist samples go into a short
bounded history; once enough have accumulated, the straight-line speed
between the oldest and newest sample decides whether a slash fired. A
cooldown then suppresses further slashes however fast the hand keeps moving.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

from motion_engine.config import SlashConfig
from motion_engine.events import EngineEvent, SlashEvent


class SlashSample(NamedTuple):
    x: float
    y: float
    timestamp: float


@dataclass(frozen=True)
class SlashState:
    history: tuple[SlashSample, ...] = ()
    cooldown_until: float = float("-inf")

    def in_cooldown(self, now: float) -> bool:
        return now < self.cooldown_until


def sweep(history: tuple[SlashSample, ...]) -> Optional[tuple[float, float]]:
    """(speed px/s, angle rad) between oldest and newest sample, or None."""
    if len(history) < 2:
        return None
    first, last = history[0], history[-1]
    elapsed = last.timestamp - first.timestamp
    if elapsed <= 0:
        return None
    dx = last.x - first.x
    dy = last.y - first.y
    return math.hypot(dx, dy) / elapsed, math.atan2(dy, dx)


def step_slash(
    state: SlashState,
    wrist: Optional[tuple[float, float]],
    timestamp: float,
    config: Optional[SlashConfig] = None,
) -> tuple[SlashState, list[EngineEvent]]:
    """Advance by one frame. `wrist` is None whenever the hand is not flat."""
    cfg = config or SlashConfig()

    if wrist is None:
        if state.history:
            return SlashState(cooldown_until=state.cooldown_until), []
        return state, []

    sample = SlashSample(float(wrist[0]), float(wrist[1]), timestamp)
    history = (state.history + (sample,))[-cfg.history_size:]

    if len(history) < cfg.min_samples:
        return SlashState(history, state.cooldown_until), []

    motion = sweep(history)
    if motion is None:
        return SlashState(history, state.cooldown_until), []

    speed, angle = motion
    if speed > cfg.speed and not state.in_cooldown(timestamp):
        event = SlashEvent(
            start=(history[0].x, history[0].y),
            end=(history[-1].x, history[-1].y),
            angle=angle,
            speed=speed,
            timestamp=timestamp,
        )
        return SlashState(history, timestamp + cfg.cooldown), [event]

    return SlashState(history, state.cooldown_until), []


class SlashDetector:
    """Holds the current SlashState for the frame loop."""

    def __init__(self, config: Optional[SlashConfig] = None):
        self.config = config or SlashConfig()
        self.state = SlashState()

    def update(self, wrist: Optional[tuple[float, float]], timestamp: float) -> list[EngineEvent]:
        self.state, events = step_slash(self.state, wrist, timestamp, self.config)
        return events

    def reset(self):
        self.state = SlashState()
