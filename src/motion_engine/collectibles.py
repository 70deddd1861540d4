"""Collectible spawning and aging for the mini-game overlay.

Entities appear on a randomized timer, drift down the frame while growing
(so they look like they approach along the trail), and are pruned once they
fall below the visible area. Position and scale are pure functions of age.

Lifecycle: spawned -> aging -> collected | out of bounds.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterator, Optional

from motion_engine.config import CollectiblesConfig
from motion_engine.events import EngineEvent, ExpiredEvent, SpawnedEvent

logger = logging.getLogger("motion_engine.collectibles")


@dataclass(frozen=True)
class CollectibleKind:
    name: str
    emoji: str
    size: float  # base diameter in px at scale 1.0


DEFAULT_CATALOG: tuple[CollectibleKind, ...] = (
    CollectibleKind("acorn", "🌰", 40),
    CollectibleKind("mushroom", "🍄", 45),
    CollectibleKind("pinecone", "🌲", 35),
    CollectibleKind("leaf", "🍂", 38),
    CollectibleKind("stone", "🪨", 42),
)


@dataclass
class Collectible:
    id: int
    kind: str
    x: float
    y: float
    spawn_time: float
    scale: float
    max_scale: float
    initial_y: float
    size: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.spawn_time)

    @property
    def radius(self) -> float:
        return self.size * self.scale / 2.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "scale": round(self.scale, 3),
            "size": self.size,
        }


class SpawnScheduler:
    """Draws inter-arrival gaps uniformly from [min_interval, max_interval).

    Each scheduled time is measured from the previous scheduled time, not
    from when the frame loop noticed it, so gaps stay in range regardless
    of tick jitter.
    """

    def __init__(
        self,
        min_interval: float,
        max_interval: float,
        rng: Optional[random.Random] = None,
    ):
        if min_interval < 0 or max_interval < min_interval:
            raise ValueError(
                f"invalid spawn interval [{min_interval}, {max_interval})"
            )
        self.min_interval = min_interval
        self.max_interval = max_interval
        self._rng = rng or random.Random()
        self._next: Optional[float] = None

    def draw_interval(self) -> float:
        return self.min_interval + self._rng.random() * (self.max_interval - self.min_interval)

    def start(self, now: float):
        self._next = now + self.draw_interval()

    def stop(self):
        self._next = None

    @property
    def next_spawn_at(self) -> Optional[float]:
        return self._next

    def due(self, now: float) -> list[float]:
        """Return every scheduled spawn time <= now and advance the schedule."""
        if self._next is None:
            return []
        times = []
        while self._next <= now:
            times.append(self._next)
            self._next += self.draw_interval()
        return times


class CollectibleField:
    """The live set of collectibles for one session."""

    def __init__(
        self,
        frame_width: float,
        frame_height: float,
        config: Optional[CollectiblesConfig] = None,
        catalog: tuple[CollectibleKind, ...] = DEFAULT_CATALOG,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or CollectiblesConfig()
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.catalog = catalog
        self._rng = rng or random.Random()
        self.scheduler = SpawnScheduler(
            self.config.spawn_min_interval,
            self.config.spawn_max_interval,
            rng=self._rng,
        )
        self._entities: dict[int, Collectible] = {}
        self._next_id = 0

    def start(self, now: float):
        self.scheduler.start(now)

    def stop(self):
        self.scheduler.stop()
        self._entities.clear()

    def spawn(self, now: float) -> Collectible:
        cfg = self.config
        kind = self._rng.choice(self.catalog)
        usable = max(0.0, self.frame_width - 2 * cfg.spawn_margin)
        x = cfg.spawn_margin + self._rng.random() * usable
        y = self.frame_height * cfg.spawn_height

        entity = Collectible(
            id=self._next_id,
            kind=kind.name,
            x=x,
            y=y,
            spawn_time=now,
            scale=cfg.initial_scale,
            max_scale=cfg.max_scale,
            initial_y=y,
            size=kind.size,
        )
        self._next_id += 1
        self._entities[entity.id] = entity
        logger.debug("Spawned %s at (%.0f, %.0f)", entity.kind, entity.x, entity.y)
        return entity

    def age_entity(self, entity: Collectible, now: float):
        cfg = self.config
        age = entity.age(now)
        entity.y = entity.initial_y + age * cfg.drift_speed
        entity.scale = min(entity.max_scale, cfg.initial_scale + age * cfg.growth_rate)

    def is_out_of_bounds(self, entity: Collectible) -> bool:
        return entity.y >= self.frame_height + self.config.out_of_bounds_margin

    def update(self, now: float) -> list[EngineEvent]:
        """Spawn due entities, age all of them and prune those off screen."""
        events: list[EngineEvent] = []

        for spawn_time in self.scheduler.due(now):
            entity = self.spawn(spawn_time)
            events.append(SpawnedEvent(
                entity_id=entity.id, kind=entity.kind, x=entity.x, y=entity.y,
                timestamp=spawn_time,
            ))

        for entity in list(self._entities.values()):
            self.age_entity(entity, now)
            if self.is_out_of_bounds(entity):
                del self._entities[entity.id]
                events.append(ExpiredEvent(entity_id=entity.id, kind=entity.kind, timestamp=now))

        return events

    def remove(self, entity_id: int) -> Optional[Collectible]:
        return self._entities.pop(entity_id, None)

    def get(self, entity_id: int) -> Optional[Collectible]:
        return self._entities.get(entity_id)

    def newest_first(self) -> Iterator[Collectible]:
        """Live entities in reverse spawn order."""
        return reversed(list(self._entities.values()))

    def clear(self):
        self._entities.clear()

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Collectible]:
        return iter(list(self._entities.values()))

    def __contains__(self, entity_id: int) -> bool:
        return entity_id in self._entities
