"""Typed engine events and the channel that carries them.

Detectors push events; consumers drain them. The channel knows nothing about
who reads it, so the detection core stays independent of any UI.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import ClassVar, Iterator, Optional


@dataclass
class EngineEvent:
    """Base class. `type` names the event on the wire and in sink dispatch."""
    type: ClassVar[str] = "event"
    timestamp: float = field(default=0.0, kw_only=True)

    def to_dict(self) -> dict:
        return {"type": self.type, **asdict(self)}


@dataclass
class BobEvent(EngineEvent):
    type: ClassVar[str] = "bob"
    total_count: int


@dataclass
class MovementEvent(EngineEvent):
    type: ClassVar[str] = "movement"
    magnitude: float
    raw_delta: float


@dataclass
class SlashEvent(EngineEvent):
    type: ClassVar[str] = "slash"
    start: tuple[float, float]
    end: tuple[float, float]
    angle: float  # radians, atan2(dy, dx)
    speed: float  # px/s


@dataclass
class GestureChangedEvent(EngineEvent):
    type: ClassVar[str] = "gesture"
    gesture: str
    previous: str
    anchor: Optional[tuple[float, float]] = None


@dataclass
class SpawnedEvent(EngineEvent):
    type: ClassVar[str] = "spawned"
    entity_id: int
    kind: str
    x: float
    y: float


@dataclass
class ExpiredEvent(EngineEvent):
    type: ClassVar[str] = "expired"
    entity_id: int
    kind: str


@dataclass
class CollectedEvent(EngineEvent):
    """An entity was hit. The inventory change is pending until committed."""
    type: ClassVar[str] = "collected"
    kind: str
    pending_inventory_delta: int
    entity_id: int = -1
    point: tuple[float, float] = (0.0, 0.0)


@dataclass
class CommittedEvent(EngineEvent):
    type: ClassVar[str] = "committed"
    kind: str
    count: int  # inventory count for this kind after commit
    total: int  # committed score across all kinds


@dataclass
class MissedEvent(EngineEvent):
    type: ClassVar[str] = "missed"
    point: tuple[float, float]


class EventChannel:
    """FIFO queue of engine events.

    Producers call `push`; consumers call `drain` to take everything
    queued so far. A bounded `maxlen` drops the oldest events first.
    """

    def __init__(self, maxlen: Optional[int] = 1024):
        self._queue: deque[EngineEvent] = deque(maxlen=maxlen)
        self._total = 0

    def push(self, event: EngineEvent):
        self._queue.append(event)
        self._total += 1

    def extend(self, events: list[EngineEvent]):
        for event in events:
            self.push(event)

    def drain(self) -> list[EngineEvent]:
        events = list(self._queue)
        self._queue.clear()
        return events

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[EngineEvent]:
        return iter(list(self._queue))

    @property
    def total_pushed(self) -> int:
        return self._total
