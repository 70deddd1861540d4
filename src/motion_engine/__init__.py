"""MotionEngine - head-bob step counting and hand gestures from a webcam."""

__version__ = "0.1.0"

from motion_engine.config import EngineConfig
from motion_engine.errors import CameraAccessError, DetectionError, ModelLoadError, MotionEngineError
from motion_engine.keypoints import Keypoint, PoseResult
from motion_engine.region import is_face_false_positive
from motion_engine.gestures import HandGesture, HandReading, classify_hand
from motion_engine.bob import BobDetector, BobState, step_bob
from motion_engine.slash import SlashDetector, SlashState, step_slash
from motion_engine.collectibles import Collectible, CollectibleField, SpawnScheduler
from motion_engine.collection import CollectionEngine
from motion_engine.events import (
    BobEvent,
    CollectedEvent,
    CommittedEvent,
    EngineEvent,
    EventChannel,
    ExpiredEvent,
    GestureChangedEvent,
    MissedEvent,
    MovementEvent,
    SlashEvent,
    SpawnedEvent,
)
from motion_engine.sinks import CallbackSink, EventSink, LoggingSink, SinkManager
from motion_engine.metrics import MetricsCollector, bobs_per_minute, estimate_distance
from motion_engine.profiler import FrameProfiler
from motion_engine.recorder import ReplaySource, SessionPlayer, SessionRecorder
from motion_engine.session import TrackingSession
