"""Event sinks: consumers of engine events.

A sink receives every event drained from the session's channel. Subclass
`EventSink` and override the `handle_<type>` methods you care about, or use the
decorator API:

    sink = EventSink(name="hud")

    @sink.handler("bob")
    def show_bobs(event):
        print(event.total_count)

Drop a .py file defining a sink in a directory and load it with
`SinkManager.load_directory`.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from motion_engine.events import EngineEvent

logger = logging.getLogger("motion_engine.sinks")


class EventSink:
    """Base class for event consumers."""

    name: str = "unnamed"
    description: str = ""

    def __init__(self, name: Optional[str] = None):
        if name:
            self.name = name
        self._handlers: dict[str, list[Callable[[EngineEvent], None]]] = {}

    def handle(self, event: EngineEvent):
        """Route an event to `handle_<type>` and any decorated handlers."""
        method = getattr(self, f"handle_{event.type}", None)
        if method is not None:
            method(event)
        for fn in self._handlers.get(event.type, []) + self._handlers.get("*", []):
            fn(event)

    def handler(self, event_type: str = "*"):
        """Decorator registering a handler for one event type (or all)."""
        def decorator(fn: Callable[[EngineEvent], None]):
            self._handlers.setdefault(event_type, []).append(fn)
            return fn
        return decorator

    def on_startup(self, context: dict):
        pass

    def on_shutdown(self):
        pass


class CallbackSink(EventSink):
    """Callback-style registration for UI and analytics consumers."""

    name = "callbacks"

    def on_bob_detected(self, fn: Callable[[int], None]):
        self.handler("bob")(lambda e: fn(e.total_count))

    def on_movement(self, fn: Callable[[float, float], None]):
        self.handler("movement")(lambda e: fn(e.magnitude, e.raw_delta))

    def on_collected(self, fn: Callable[[str, int], None]):
        self.handler("collected")(lambda e: fn(e.kind, e.pending_inventory_delta))

    def on_missed(self, fn: Callable[[tuple[float, float]], None]):
        self.handler("missed")(lambda e: fn(e.point))

    def on_slash(self, fn: Callable[[tuple, tuple, float, float], None]):
        self.handler("slash")(lambda e: fn(e.start, e.end, e.angle, e.speed))


class LoggingSink(EventSink):
    """Logs discrete events. Movement is logged at DEBUG only."""

    name = "logging"

    def __init__(self, level: int = logging.INFO, name: Optional[str] = None):
        super().__init__(name)
        self.level = level

    def handle(self, event: EngineEvent):
        level = logging.DEBUG if event.type == "movement" else self.level
        logger.log(level, "%s %s", event.type, {k: v for k, v in event.to_dict().items() if k != "type"})
        super().handle(event)


class SinkManager:
    """Registers sinks and dispatches events to them.

    A failing sink is logged and skipped; it never stops the frame loop or
    the other sinks.
    """

    def __init__(self):
        self._sinks: dict[str, EventSink] = {}

    def register(self, sink: EventSink):
        if sink.name in self._sinks:
            logger.warning("Sink '%s' already registered, replacing", sink.name)
        self._sinks[sink.name] = sink
        logger.info("Registered sink: %s", sink.name)

    def get(self, name: str) -> Optional[EventSink]:
        return self._sinks.get(name)

    def unregister(self, name: str):
        sink = self._sinks.pop(name, None)
        if sink:
            try:
                sink.on_shutdown()
            except Exception as e:
                logger.error("Sink %s shutdown error: %s", name, e)

    def dispatch(self, event: EngineEvent):
        for sink in list(self._sinks.values()):
            try:
                sink.handle(event)
            except Exception as e:
                logger.error("Sink %s failed on %s: %s", sink.name, event.type, e)

    def dispatch_all(self, events: list[EngineEvent]):
        for event in events:
            self.dispatch(event)

    def startup(self, context: dict):
        for sink in self._sinks.values():
            try:
                sink.on_startup(context)
            except Exception as e:
                logger.error("Sink %s startup error: %s", sink.name, e)

    def shutdown(self):
        for sink in self._sinks.values():
            try:
                sink.on_shutdown()
            except Exception as e:
                logger.error("Sink %s shutdown error: %s", sink.name, e)

    def load_directory(self, path: str | Path) -> int:
        """Load every sink defined in the .py files of a directory.

        A file may define a module-level `sink` instance or an EventSink
        subclass. Returns the number of sinks loaded.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("Sink directory %s does not exist", path)
            return 0

        loaded = 0
        for py_file in sorted(path.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            try:
                sink = self._load_file(py_file)
                if sink:
                    self.register(sink)
                    loaded += 1
            except Exception as e:
                logger.error("Failed to load sink %s: %s", py_file.name, e)
        return loaded

    def _load_file(self, path: Path) -> Optional[EventSink]:
        module_name = f"motion_sink_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        if isinstance(getattr(module, "sink", None), EventSink):
            return module.sink

        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, EventSink)
                and attr not in (EventSink, CallbackSink, LoggingSink)
            ):
                return attr()

        logger.warning("No EventSink found in %s", path.name)
        return None

    @property
    def names(self) -> list[str]:
        return list(self._sinks.keys())

    def __len__(self) -> int:
        return len(self._sinks)
