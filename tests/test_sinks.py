"""Tests for event sinks and the sink manager."""

import logging

from motion_engine.events import BobEvent, CollectedEvent, MissedEvent, MovementEvent, SlashEvent
from motion_engine.sinks import CallbackSink, EventSink, LoggingSink, SinkManager


class RecordingSink(EventSink):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.bobs = []
        self.started = None
        self.stopped = False

    def handle_bob(self, event):
        self.bobs.append(event.total_count)

    def on_startup(self, context):
        self.started = context

    def on_shutdown(self):
        self.stopped = True


class BrokenSink(EventSink):
    name = "broken"

    def handle_bob(self, event):
        raise RuntimeError("boom")


class TestEventSink:
    def test_typed_handler_method(self):
        sink = RecordingSink()
        sink.handle(BobEvent(total_count=2))
        sink.handle(MovementEvent(magnitude=1.0, raw_delta=1.0))
        assert sink.bobs == [2]

    def test_decorator_handlers(self):
        sink = EventSink(name="deco")
        seen = []

        @sink.handler("missed")
        def on_miss(event):
            seen.append(("miss", event.point))

        @sink.handler()
        def on_any(event):
            seen.append(("any", event.type))

        sink.handle(MissedEvent(point=(1.0, 2.0)))
        sink.handle(BobEvent(total_count=1))
        assert seen == [("miss", (1.0, 2.0)), ("any", "missed"), ("any", "bob")]


class TestCallbackSink:
    def test_callbacks(self):
        sink = CallbackSink()
        calls = []
        sink.on_bob_detected(lambda total: calls.append(("bob", total)))
        sink.on_movement(lambda mag, raw: calls.append(("move", mag, raw)))
        sink.on_collected(lambda kind, delta: calls.append(("collected", kind, delta)))
        sink.on_missed(lambda point: calls.append(("missed", point)))
        sink.on_slash(lambda start, end, angle, speed: calls.append(("slash", start, end, speed)))

        sink.handle(BobEvent(total_count=4))
        sink.handle(MovementEvent(magnitude=6.0, raw_delta=-6.0))
        sink.handle(CollectedEvent(kind="leaf", pending_inventory_delta=1))
        sink.handle(MissedEvent(point=(5.0, 6.0)))
        sink.handle(SlashEvent(start=(0.0, 0.0), end=(100.0, 0.0), angle=0.0, speed=1200.0))

        assert calls == [
            ("bob", 4),
            ("move", 6.0, -6.0),
            ("collected", "leaf", 1),
            ("missed", (5.0, 6.0)),
            ("slash", (0.0, 0.0), (100.0, 0.0), 1200.0),
        ]


class TestLoggingSink:
    def test_logs_events(self, caplog):
        sink = LoggingSink()
        with caplog.at_level(logging.DEBUG, logger="motion_engine.sinks"):
            sink.handle(BobEvent(total_count=1))
            sink.handle(MovementEvent(magnitude=1.0, raw_delta=1.0))
        levels = {r.getMessage().split()[0]: r.levelno for r in caplog.records}
        assert levels["bob"] == logging.INFO
        assert levels["movement"] == logging.DEBUG


class TestSinkManager:
    def test_dispatch_isolates_failures(self):
        manager = SinkManager()
        good = RecordingSink()
        manager.register(BrokenSink())
        manager.register(good)
        manager.dispatch_all([BobEvent(total_count=1), BobEvent(total_count=2)])
        assert good.bobs == [1, 2]

    def test_lifecycle(self):
        manager = SinkManager()
        sink = RecordingSink()
        manager.register(sink)
        manager.startup({"session": None})
        assert sink.started == {"session": None}
        manager.shutdown()
        assert sink.stopped

    def test_register_replaces_same_name(self):
        manager = SinkManager()
        manager.register(RecordingSink())
        manager.register(RecordingSink())
        assert len(manager) == 1

    def test_unregister_calls_shutdown(self):
        manager = SinkManager()
        sink = RecordingSink()
        manager.register(sink)
        manager.unregister("recording")
        assert sink.stopped
        assert manager.names == []

    def test_load_directory(self, tmp_path):
        (tmp_path / "counter.py").write_text(
            "from motion_engine.sinks import EventSink\n"
            "\n"
            "class CounterSink(EventSink):\n"
            "    name = 'counter'\n"
            "    count = 0\n"
            "\n"
            "    def handle_bob(self, event):\n"
            "        self.count += 1\n"
        )
        (tmp_path / "instance.py").write_text(
            "from motion_engine.sinks import EventSink\n"
            "sink = EventSink(name='instance')\n"
        )
        (tmp_path / "_private.py").write_text("raise RuntimeError('skipped')\n")
        (tmp_path / "broken.py").write_text("raise RuntimeError('bad sink')\n")

        manager = SinkManager()
        assert manager.load_directory(tmp_path) == 2
        assert sorted(manager.names) == ["counter", "instance"]

    def test_load_missing_directory(self, tmp_path):
        assert SinkManager().load_directory(tmp_path / "nope") == 0
