"""Pinch-to-collect hit testing with a delayed inventory commit.

A hit removes the entity from the field at once, so it can never be hit
twice, but the inventory only changes after `collect_delay` seconds. In
between the collection is pending and renderers show an indicator.
Misses are reported at most once per `miss_throttle` seconds.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, deque
from dataclasses import dataclass
from typing import Iterable, Optional

from motion_engine.collectibles import Collectible, CollectibleField
from motion_engine.config import CollectionConfig
from motion_engine.events import CollectedEvent, CommittedEvent, EngineEvent, MissedEvent

logger = logging.getLogger("motion_engine.collection")


@dataclass
class PendingCollection:
    entity_id: int
    kind: str
    collected_at: float
    commit_at: float


def hit_radius(entity: Collectible, margin: float) -> float:
    return entity.size * entity.scale / 2.0 + margin


def find_hit(
    anchor: tuple[float, float],
    entities: Iterable[Collectible],
    margin: float,
) -> Optional[Collectible]:
    """First entity whose center lies within its hit radius of the anchor."""
    ax, ay = anchor
    for entity in entities:
        if math.hypot(ax - entity.x, ay - entity.y) < hit_radius(entity, margin):
            return entity
    return None


class CollectionEngine:
    """Owns the inventory and the pending-collection queue."""

    def __init__(self, config: Optional[CollectionConfig] = None):
        self.config = config or CollectionConfig()
        self._inventory: Counter = Counter()
        self._pending: deque[PendingCollection] = deque()
        self._last_miss: Optional[float] = None

    def commit_due(self, now: float) -> list[EngineEvent]:
        events: list[EngineEvent] = []
        while self._pending and self._pending[0].commit_at <= now:
            item = self._pending.popleft()
            self._inventory[item.kind] += 1
            events.append(CommittedEvent(
                kind=item.kind,
                count=self._inventory[item.kind],
                total=self.score,
                timestamp=now,
            ))
            logger.info("Collected %s (total: %d)", item.kind, self.score)
        return events

    def process(
        self,
        anchor: Optional[tuple[float, float]],
        field: CollectibleField,
        now: float,
    ) -> list[EngineEvent]:
        """Commit due collections, then hit-test the anchor if pinching."""
        events = self.commit_due(now)
        if anchor is None:
            return events

        entity = find_hit(anchor, field.newest_first(), self.config.hit_margin)
        if entity is not None:
            field.remove(entity.id)
            self._pending.append(PendingCollection(
                entity_id=entity.id,
                kind=entity.kind,
                collected_at=now,
                commit_at=now + self.config.collect_delay,
            ))
            events.append(CollectedEvent(
                kind=entity.kind,
                pending_inventory_delta=1,
                entity_id=entity.id,
                point=(entity.x, entity.y),
                timestamp=now,
            ))
            return events

        if self._last_miss is None or now - self._last_miss >= self.config.miss_throttle:
            self._last_miss = now
            events.append(MissedEvent(point=anchor, timestamp=now))
        return events

    @property
    def inventory(self) -> dict[str, int]:
        return dict(self._inventory)

    @property
    def score(self) -> int:
        return sum(self._inventory.values())

    @property
    def pending(self) -> list[PendingCollection]:
        return list(self._pending)

    def reset(self):
        self._inventory.clear()
        self._pending.clear()
        self._last_miss = None
