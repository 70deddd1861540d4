"""Example MotionEngine sink: JSON-lines event logger.

Appends every discrete event to a file and keeps running counts.
Load it with `motion-engine run --sinks plugins/`.

Demonstrates:
- Subclassing EventSink
- Handling specific event types with handle_<type> methods
- Using on_startup/on_shutdown lifecycle
- Registering type-specific handlers via decorator
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path

from motion_engine.events import EngineEvent
from motion_engine.sinks import EventSink

logger = logging.getLogger("motion_engine.sinks.event_logger")


class EventLoggerSink(EventSink):
    """Logs engine events to a file with running statistics."""

    name = "event_logger"
    description = "Logs discrete engine events to a JSON-lines file with counts"

    def __init__(self, path: str = "motion_events.jsonl"):
        super().__init__()
        self._counts: Counter = Counter()
        self._log_path = Path(path)
        self._log_file = None

        @self.handler("committed")
        def on_committed(event: EngineEvent):
            logger.info("Inventory: %s x%d (score %d)", event.kind, event.count, event.total)

    def on_startup(self, context: dict):
        try:
            self._log_file = open(self._log_path, "a")
            logger.info("EventLogger: writing to %s", self._log_path)
        except OSError as e:
            logger.warning("EventLogger: could not open log file: %s", e)

    def on_shutdown(self):
        if self._log_file:
            self._log_file.close()
            self._log_file = None
        if self._counts:
            logger.info("EventLogger summary: %s", dict(self._counts))

    def handle(self, event: EngineEvent):
        # movement fires every frame; count it but keep it out of the file
        self._counts[event.type] += 1
        if event.type != "movement":
            self._write_log(event)
        super().handle(event)

    def handle_slash(self, event: EngineEvent):
        logger.info("Slash at %.0f px/s", event.speed)

    def _write_log(self, event: EngineEvent):
        if not self._log_file:
            return
        self._log_file.write(json.dumps(event.to_dict()) + "\n")
        self._log_file.flush()

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)
