"""The frame loop: one tracking session from camera acquisition to release.

Each tick reads a frame, awaits face then hand estimation, and runs every
detector synchronously before the next tick is scheduled. Ticks never
overlap, so detector state needs no locking. Per-frame estimation failures
are logged and treated as "no observation"; they never escape the loop.

    async with TrackingSession(MediaPipeKeypointSource(), OpenCVCamera()) as session:
        session.sinks.register(LoggingSink())
        await session.run()
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from motion_engine.bob import BobDetector
from motion_engine.collectibles import CollectibleField
from motion_engine.collection import CollectionEngine
from motion_engine.config import EngineConfig
from motion_engine.detector import Camera, KeypointSource
from motion_engine.errors import CameraAccessError, ModelLoadError
from motion_engine.events import (
    BobEvent,
    CollectedEvent,
    EngineEvent,
    EventChannel,
    GestureChangedEvent,
    MissedEvent,
    SlashEvent,
)
from motion_engine.gestures import HandGesture, HandReading, classify_hand
from motion_engine.keypoints import PoseResult
from motion_engine.metrics import MetricsCollector, estimate_distance
from motion_engine.profiler import FrameProfiler
from motion_engine.region import is_face_false_positive
from motion_engine.sinks import SinkManager
from motion_engine.slash import SlashDetector

logger = logging.getLogger("motion_engine.session")


@dataclass
class SessionStats:
    fps: float
    avg_latency_ms: float
    total_frames: int
    face_frames: int
    rejected_hands: int
    detection_failures: dict[str, int]
    bob_count: int
    bobs_per_minute: int
    average_movement: float
    distance_miles: float
    score: int
    pending_collections: int
    live_collectibles: int
    elapsed_seconds: float
    profiler_summary: dict = field(default_factory=dict)


class WorkoutTimer:
    """Active time across pause/resume cycles."""

    def __init__(self):
        self._accumulated = 0.0
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def resume(self, now: float):
        if self._started_at is None:
            self._started_at = now

    def pause(self, now: float):
        if self._started_at is not None:
            self._accumulated += now - self._started_at
            self._started_at = None

    def elapsed(self, now: float) -> float:
        if self._started_at is None:
            return self._accumulated
        return self._accumulated + (now - self._started_at)

    def reset(self, now: float):
        self._accumulated = 0.0
        if self._started_at is not None:
            self._started_at = now


class TrackingSession:
    """Owns every stateful component for one tracking session.

    `start()` acquires the camera and loads the model; failures there are
    fatal and propagate. `stop()` is idempotent and releases the camera
    exactly once whatever triggered it.
    """

    def __init__(
        self,
        source: KeypointSource,
        camera: Optional[Camera] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        sinks: Optional[SinkManager] = None,
    ):
        self.source = source
        self.camera = camera
        self.config = config or EngineConfig()
        self.sinks = sinks or SinkManager()
        self.events = EventChannel()
        self.metrics = MetricsCollector()
        self.profiler = FrameProfiler(enabled=self.config.session.enable_profiling)
        self.recorder = None  # optional SessionRecorder

        self._clock = clock
        self._rng = rng or random.Random()
        self._active = False
        self._paused = False
        self._camera_held = False
        self._in_flight = 0
        self._close_pending = False
        self._timer = WorkoutTimer()
        self._build_state()

    def _build_state(self):
        cfg = self.config
        width, height = self.frame_size
        self.bob = BobDetector(cfg.bob)
        self.slash = SlashDetector(cfg.slash)
        self.field = CollectibleField(width, height, cfg.collectibles, rng=self._rng)
        self.collection = CollectionEngine(cfg.collection)
        self._gesture = HandGesture.NONE
        self._frame_times: deque[float] = deque(maxlen=60)
        self._face_frames = 0
        self._rejected_hands = 0

    @property
    def frame_size(self) -> tuple[int, int]:
        if self.camera is not None:
            return self.camera.frame_size
        return self.config.session.frame_width, self.config.session.frame_height

    @property
    def running(self) -> bool:
        return self._active

    @property
    def paused(self) -> bool:
        return self._paused

    # --- lifecycle ---

    async def start(self):
        """Acquire the camera, load the model and begin a fresh session."""
        if self._active:
            return

        if self.camera is not None:
            try:
                self.camera.acquire()
            except CameraAccessError:
                raise
            except Exception as e:
                raise CameraAccessError(f"camera failed to open: {e}") from e
            self._camera_held = True

        # reloading supersedes a close deferred by the previous stop
        self._close_pending = False

        try:
            self.source.load()
        except ModelLoadError:
            self._release_camera()
            raise
        except Exception as e:
            self._release_camera()
            raise ModelLoadError(f"landmark model failed to load: {e}") from e

        self._build_state()
        now = self._clock()
        if self.config.session.enable_collectibles:
            self.field.start(now)
        self._timer = WorkoutTimer()
        self._timer.resume(now)
        self._paused = False
        self._active = True
        self.sinks.startup({"session": self, "config": self.config})
        logger.info("Tracking started at %dx%d", *self.frame_size)

    def stop(self, reason: str = "user"):
        """End the session. Safe to call repeatedly and from any exit path."""
        if not self._active and not self._camera_held:
            return
        was_active = self._active
        self._active = False
        self._timer.pause(self._clock())
        self.field.stop()
        self._release_camera()
        if self._in_flight:
            # closed once the pending estimate settles
            self._close_pending = True
        else:
            self.source.close()
        if was_active:
            self.sinks.shutdown()
        logger.info("Tracking stopped (%s)", reason)

    def _release_camera(self):
        if self.camera is not None and self._camera_held:
            self._camera_held = False
            self.camera.release()

    def pause(self):
        """Suspend detection and the workout timer without releasing the camera."""
        if self._active and not self._paused:
            self._paused = True
            self._timer.pause(self._clock())
            logger.info("Tracking paused")

    def resume(self):
        if self._active and self._paused:
            self._paused = False
            self._timer.resume(self._clock())
            logger.info("Tracking resumed")

    async def __aenter__(self) -> TrackingSession:
        await self.start()
        return self

    async def __aexit__(self, *args):
        self.stop("scope exit")

    # --- frame loop ---

    async def run(self, max_frames: Optional[int] = None):
        """Tick until stopped, pacing to the configured frame rate."""
        interval = 1.0 / max(1e-3, self.config.session.target_fps)
        frames = 0
        while self._active:
            t0 = time.perf_counter()
            await self.tick()
            frames += 1
            if max_frames is not None and frames >= max_frames:
                break
            await asyncio.sleep(max(0.0, interval - (time.perf_counter() - t0)))

    async def tick(self, now: Optional[float] = None) -> list[EngineEvent]:
        """Run one frame. Returns the events it produced."""
        if not self._active or self._paused:
            return []

        t_start = time.perf_counter()
        frame = None
        if self.camera is not None:
            frame = self.camera.read()
            if frame is None:
                return []

        face, face_ok = await self._estimate("face", frame)
        if not self._active:
            return []
        hand, hand_ok = await self._estimate("hand", frame)
        if not self._active:
            return []

        if now is None:
            now = self._clock()
        if self.recorder is not None:
            self.recorder.add_frame(face, hand, now, face_ok=face_ok, hand_ok=hand_ok)

        events = self.process(face, hand, now, face_ok=face_ok, hand_ok=hand_ok)
        self.flush()

        latency = time.perf_counter() - t_start
        self._frame_times.append(latency)
        self.metrics.record_frame(latency, face is not None)
        return events

    async def _estimate(self, subject: str, frame) -> tuple[Optional[PoseResult], bool]:
        estimator = self.source.estimate_face if subject == "face" else self.source.estimate_hand
        self._in_flight += 1
        try:
            with self.profiler.stage(f"{subject}_estimation"):
                return await estimator(frame), True
        except Exception as e:
            logger.warning("%s estimation failed: %s", subject, e)
            self.metrics.record_failure(subject)
            return None, False
        finally:
            self._in_flight -= 1
            if self._close_pending and not self._in_flight:
                self._close_pending = False
                self.source.close()
                logger.debug("Keypoint source closed after in-flight %s estimate", subject)

    def process(
        self,
        face: Optional[PoseResult],
        hand: Optional[PoseResult],
        now: float,
        face_ok: bool = True,
        hand_ok: bool = True,
    ) -> list[EngineEvent]:
        """Run every detector on one frame's observations.

        `face_ok`/`hand_ok` False means estimation failed: that subject's
        detector state is left untouched. A successful estimation returning
        None means nothing was detected.
        """
        cfg = self.config
        events: list[EngineEvent] = []

        if face_ok:
            if face is not None:
                self._face_frames += 1
            with self.profiler.stage("bob"):
                events += self.bob.update(face, now)

        reading: Optional[HandReading] = None
        if hand_ok:
            if hand is not None:
                with self.profiler.stage("region_filter"):
                    width, height = self.frame_size
                    if is_face_false_positive(hand, width, height, cfg.region):
                        self._rejected_hands += 1
                        hand = None
            if hand is not None:
                with self.profiler.stage("classification"):
                    reading = classify_hand(hand.points, cfg.gestures)
            events += self._gesture_change(reading, now)
            with self.profiler.stage("slash"):
                wrist = reading.wrist if reading is not None and reading.is_flat else None
                events += self.slash.update(wrist, now)

        if cfg.session.enable_collectibles:
            with self.profiler.stage("collectibles"):
                events += self.field.update(now)
            anchor = reading.anchor if reading is not None and reading.is_pinching else None
            with self.profiler.stage("collection"):
                events += self.collection.process(anchor, self.field, now)

        self._record_metrics(events, now)
        self.events.extend(events)
        return events

    def _gesture_change(self, reading: Optional[HandReading], now: float) -> list[EngineEvent]:
        gesture = reading.gesture if reading is not None else HandGesture.NONE
        if gesture == self._gesture:
            return []
        previous, self._gesture = self._gesture, gesture
        return [GestureChangedEvent(
            gesture=gesture.value,
            previous=previous.value,
            anchor=reading.anchor if reading is not None else None,
            timestamp=now,
        )]

    def _record_metrics(self, events: list[EngineEvent], now: float):
        for event in events:
            if isinstance(event, BobEvent):
                self.metrics.record_bob(self.bob.bobs_per_minute(now))
            elif isinstance(event, SlashEvent):
                self.metrics.record_slash()
            elif isinstance(event, CollectedEvent):
                self.metrics.record_collected(event.kind)
            elif isinstance(event, MissedEvent):
                self.metrics.record_miss()

    def flush(self) -> list[EngineEvent]:
        """Drain queued events into the registered sinks."""
        events = self.events.drain()
        if events and len(self.sinks):
            with self.profiler.stage("dispatch"):
                self.sinks.dispatch_all(events)
        return events

    # --- queries ---

    def bobs_per_minute(self, now: Optional[float] = None) -> int:
        return self.bob.bobs_per_minute(self._clock() if now is None else now)

    def inventory(self) -> dict[str, int]:
        return self.collection.inventory

    def distance_miles(self) -> float:
        return estimate_distance(self.bob.bob_count, self.config.session.miles_per_bob)

    def elapsed_seconds(self, now: Optional[float] = None) -> float:
        return self._timer.elapsed(self._clock() if now is None else now)

    def reset(self):
        """Zero every counter and clear the live collectibles."""
        now = self._clock()
        self.bob.reset()
        self.slash.reset()
        self.collection.reset()
        self.field.clear()
        self._gesture = HandGesture.NONE
        self._timer.reset(now)
        self.events.drain()
        logger.info("Session stats reset")

    @property
    def stats(self) -> SessionStats:
        if self._frame_times:
            avg = sum(self._frame_times) / len(self._frame_times)
        else:
            avg = 0.0
        now = self._clock()
        return SessionStats(
            fps=1.0 / avg if avg > 0 else 0.0,
            avg_latency_ms=avg * 1000,
            total_frames=self.metrics.frames_total,
            face_frames=self._face_frames,
            rejected_hands=self._rejected_hands,
            detection_failures=self.metrics.failures,
            bob_count=self.bob.bob_count,
            bobs_per_minute=self.bobs_per_minute(now),
            average_movement=self.bob.average_movement(),
            distance_miles=self.distance_miles(),
            score=self.collection.score,
            pending_collections=len(self.collection.pending),
            live_collectibles=len(self.field),
            elapsed_seconds=self.elapsed_seconds(now),
            profiler_summary=self.profiler.summary(),
        )
