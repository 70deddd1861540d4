"""Tests for typed engine events and the event channel."""

import json

from motion_engine.events import (
    BobEvent,
    CollectedEvent,
    EventChannel,
    GestureChangedEvent,
    MovementEvent,
    SlashEvent,
)


class TestEvents:
    def test_to_dict(self):
        data = BobEvent(total_count=3, timestamp=1.5).to_dict()
        assert data == {"type": "bob", "total_count": 3, "timestamp": 1.5}

    def test_type_is_not_a_field(self):
        event = MovementEvent(magnitude=2.0, raw_delta=-2.0)
        assert event.type == "movement"
        assert event.timestamp == 0.0

    def test_json_serializable(self):
        events = [
            SlashEvent(start=(0.0, 0.0), end=(10.0, 5.0), angle=0.46, speed=900.0, timestamp=2.0),
            CollectedEvent(kind="acorn", pending_inventory_delta=1, entity_id=4, point=(1.0, 2.0)),
            GestureChangedEvent(gesture="pinch", previous="none", anchor=(3.0, 4.0)),
        ]
        for event in events:
            decoded = json.loads(json.dumps(event.to_dict()))
            assert decoded["type"] == event.type

    def test_gesture_type_name(self):
        assert GestureChangedEvent(gesture="flat", previous="none").to_dict()["type"] == "gesture"


class TestEventChannel:
    def test_fifo_drain(self):
        ch = EventChannel()
        ch.push(BobEvent(total_count=1))
        ch.extend([BobEvent(total_count=2), BobEvent(total_count=3)])
        assert len(ch) == 3
        assert [e.total_count for e in ch.drain()] == [1, 2, 3]
        assert len(ch) == 0
        assert ch.drain() == []

    def test_bounded_drops_oldest(self):
        ch = EventChannel(maxlen=2)
        for i in range(5):
            ch.push(BobEvent(total_count=i))
        assert [e.total_count for e in ch] == [3, 4]
        assert ch.total_pushed == 5

    def test_iter_does_not_consume(self):
        ch = EventChannel()
        ch.push(BobEvent(total_count=1))
        list(ch)
        assert len(ch) == 1
