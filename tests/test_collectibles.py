"""Tests for collectible spawning, aging and pruning."""

import random

import pytest

from motion_engine.collectibles import (
    DEFAULT_CATALOG,
    CollectibleField,
    CollectibleKind,
    SpawnScheduler,
)
from motion_engine.config import CollectiblesConfig
from motion_engine.events import ExpiredEvent, SpawnedEvent

ACORN = (CollectibleKind("acorn", "🌰", 40),)


def make_field(seed=0, catalog=ACORN, **overrides):
    cfg = CollectiblesConfig(**overrides)
    return CollectibleField(640, 480, cfg, catalog=catalog, rng=random.Random(seed))


class TestSpawnScheduler:
    @pytest.mark.parametrize("seed", range(5))
    def test_gaps_in_range(self, seed):
        sched = SpawnScheduler(10.0, 20.0, rng=random.Random(seed))
        sched.start(0.0)
        times = [0.0]
        now = 0.0
        while len(times) < 101:
            now += 1 / 30
            times += sched.due(now)
        gaps = [b - a for a, b in zip(times, times[1:])][:100]
        assert len(gaps) == 100
        assert all(10.0 <= g < 20.0 for g in gaps)

    def test_catches_up_after_long_stall(self):
        sched = SpawnScheduler(10.0, 20.0, rng=random.Random(1))
        sched.start(0.0)
        due = sched.due(100.0)
        assert 5 <= len(due) <= 10
        assert sched.next_spawn_at > 100.0

    def test_not_started(self):
        sched = SpawnScheduler(10.0, 20.0)
        assert sched.due(1000.0) == []

    def test_stop(self):
        sched = SpawnScheduler(10.0, 20.0)
        sched.start(0.0)
        sched.stop()
        assert sched.next_spawn_at is None
        assert sched.due(1000.0) == []

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            SpawnScheduler(20.0, 10.0)


class TestCollectibleField:
    def test_spawn_position(self):
        field = make_field(catalog=DEFAULT_CATALOG)
        for _ in range(50):
            entity = field.spawn(0.0)
            assert 50.0 <= entity.x <= 590.0
            assert entity.y == pytest.approx(480 * 0.7)
            assert entity.scale == pytest.approx(0.6)
            assert entity.kind in {k.name for k in DEFAULT_CATALOG}
        assert len(field) == 50

    def test_ids_unique(self):
        field = make_field()
        ids = [field.spawn(0.0).id for _ in range(10)]
        assert len(set(ids)) == 10

    def test_aging(self):
        field = make_field()
        entity = field.spawn(0.0)
        field.age_entity(entity, 2.0)
        assert entity.y == pytest.approx(336.0 + 100.0)
        assert entity.scale == pytest.approx(0.9)

    def test_scale_capped(self):
        field = make_field()
        entity = field.spawn(0.0)
        field.age_entity(entity, 10.0)
        assert entity.scale == pytest.approx(1.2)

    def test_update_spawns_on_schedule(self):
        field = make_field()
        field.start(0.0)
        assert field.update(9.99) == []
        events = []
        t = 10.0
        while not events:
            events = field.update(t)
            t += 0.5
        assert isinstance(events[0], SpawnedEvent)
        assert events[0].kind == "acorn"
        assert len(field) == 1

    def test_pruned_out_of_bounds(self):
        field = make_field()
        entity = field.spawn(0.0)
        # y = 336 + 50 * age reaches 480 + 50 at age 3.88
        assert field.update(3.8) == []
        events = field.update(3.9)
        assert events == [ExpiredEvent(entity_id=entity.id, kind="acorn", timestamp=3.9)]
        assert entity.id not in field

    def test_newest_first(self):
        field = make_field()
        ids = [field.spawn(float(i)).id for i in range(3)]
        assert [e.id for e in field.newest_first()] == ids[::-1]

    def test_remove(self):
        field = make_field()
        entity = field.spawn(0.0)
        assert field.remove(entity.id) is entity
        assert field.remove(entity.id) is None
        assert field.get(entity.id) is None

    def test_stop_clears(self):
        field = make_field()
        field.start(0.0)
        field.spawn(0.0)
        field.stop()
        assert len(field) == 0
        assert field.update(100.0) == []

    def test_to_dict(self):
        field = make_field()
        data = field.spawn(0.0).to_dict()
        assert data["kind"] == "acorn"
        assert set(data) == {"id", "kind", "x", "y", "scale", "size"}
