"""Session recording and replay: capture face/hand landmarks to disk.

Recordings let the detectors run without a camera:
- Reproducible tests and CI on headless machines
- Tuning thresholds against a real workout
- Demos that play back deterministically

Usage:
    recorder = SessionRecorder(frame_size=(640, 480))
    recorder.start()
    session.recorder = recorder
    ...
    recorder.save("walk.json")

    player = SessionPlayer.load("walk.json")
    replay(session, player)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import numpy as np

from motion_engine.errors import DetectionError
from motion_engine.keypoints import NUM_FACE_LANDMARKS, NUM_HAND_LANDMARKS, PoseResult

if TYPE_CHECKING:
    from motion_engine.events import EngineEvent
    from motion_engine.session import TrackingSession

logger = logging.getLogger("motion_engine.recorder")


@dataclass
class RecordedFrame:
    """One frame of a recording. Landmarks are nested lists, or None if absent.

    `face_ok`/`hand_ok` False marks a failed estimation, which replays as an
    error rather than as "nothing detected".
    """
    timestamp: float  # seconds from recording start
    face: Optional[list[list[float]]]
    hand: Optional[list[list[float]]]
    face_ok: bool = True
    hand_ok: bool = True

    def face_result(self) -> Optional[PoseResult]:
        if self.face is None:
            return None
        return PoseResult(kind="face", points=np.array(self.face, dtype=np.float32))

    def hand_result(self) -> Optional[PoseResult]:
        if self.hand is None:
            return None
        return PoseResult(kind="hand", points=np.array(self.hand, dtype=np.float32))


class SessionRecorder:
    """Records per-frame face and hand landmarks."""

    def __init__(self, frame_size: tuple[int, int] = (640, 480)):
        self.frame_size = frame_size
        self._frames: list[RecordedFrame] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording. Timestamps are relative to the first frame."""
        self._frames = []
        self._start_time = None
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(
        self,
        face: Optional[PoseResult],
        hand: Optional[PoseResult],
        timestamp: Optional[float] = None,
        face_ok: bool = True,
        hand_ok: bool = True,
    ):
        if not self._recording:
            return
        if timestamp is None:
            timestamp = time.monotonic()
        if self._start_time is None:
            self._start_time = timestamp

        self._frames.append(RecordedFrame(
            timestamp=timestamp - self._start_time,
            face=face.points.tolist() if face is not None and face_ok else None,
            hand=hand.points.tolist() if hand is not None and hand_ok else None,
            face_ok=face_ok,
            hand_ok=hand_ok,
        ))

    def save(self, path: str | Path):
        """Save recording to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "frame_size": list(self.frame_size),
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [asdict(f) for f in self._frames],
        }

        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved %d frames to %s", len(self._frames), path)

    def save_compact(self, path: str | Path):
        """Save in compact binary format (numpy npz). Absent landmarks are masked."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        n = len(self._frames)
        timestamps = np.array([f.timestamp for f in self._frames], dtype=np.float64)
        faces = np.zeros((n, NUM_FACE_LANDMARKS, 3), dtype=np.float32)
        hands = np.zeros((n, NUM_HAND_LANDMARKS, 3), dtype=np.float32)
        has_face = np.zeros(n, dtype=bool)
        has_hand = np.zeros(n, dtype=bool)
        face_ok = np.array([f.face_ok for f in self._frames], dtype=bool)
        hand_ok = np.array([f.hand_ok for f in self._frames], dtype=bool)
        for i, f in enumerate(self._frames):
            if f.face is not None:
                face = np.array(f.face, dtype=np.float32)[:NUM_FACE_LANDMARKS]
                faces[i, : len(face)] = face
                has_face[i] = True
            if f.hand is not None:
                hands[i] = np.array(f.hand, dtype=np.float32)[:NUM_HAND_LANDMARKS]
                has_hand[i] = True

        np.savez_compressed(
            path,
            frame_size=np.array(self.frame_size, dtype=np.int32),
            timestamps=timestamps,
            faces=faces,
            hands=hands,
            has_face=has_face,
            has_hand=has_hand,
            face_ok=face_ok,
            hand_ok=hand_ok,
        )
        logger.info("Saved %d frames to %s", n, path)


class SessionPlayer:
    """Replays a recorded session.

    Usage:
        player = SessionPlayer.load("walk.json")
        for frame in player.play():
            session.process(frame.face_result(), frame.hand_result(), frame.timestamp)
    """

    def __init__(self, frames: list[RecordedFrame], frame_size: tuple[int, int] = (640, 480)):
        self._frames = frames
        self.frame_size = frame_size

    @classmethod
    def load(cls, path: str | Path) -> SessionPlayer:
        path = Path(path)

        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        frames = [
            RecordedFrame(
                timestamp=f["timestamp"],
                face=f.get("face"),
                hand=f.get("hand"),
                face_ok=f.get("face_ok", True),
                hand_ok=f.get("hand_ok", True),
            )
            for f in data["frames"]
        ]
        return cls(frames, tuple(data.get("frame_size", (640, 480))))

    @classmethod
    def _load_compact(cls, path: Path) -> SessionPlayer:
        data = np.load(path, allow_pickle=False)
        timestamps = data["timestamps"]
        faces, hands = data["faces"], data["hands"]
        has_face, has_hand = data["has_face"], data["has_hand"]
        n = len(timestamps)
        face_ok = data["face_ok"] if "face_ok" in data.files else np.ones(n, dtype=bool)
        hand_ok = data["hand_ok"] if "hand_ok" in data.files else np.ones(n, dtype=bool)

        frames = [
            RecordedFrame(
                timestamp=float(timestamps[i]),
                face=faces[i].tolist() if has_face[i] else None,
                hand=hands[i].tolist() if has_hand[i] else None,
                face_ok=bool(face_ok[i]),
                hand_ok=bool(hand_ok[i]),
            )
            for i in range(n)
        ]
        width, height = (int(v) for v in data["frame_size"])
        return cls(frames, (width, height))

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def play(self) -> Iterator[RecordedFrame]:
        """Iterate through all frames instantly (no timing)."""
        yield from self._frames

    def get_frame(self, index: int) -> Optional[RecordedFrame]:
        if 0 <= index < len(self._frames):
            return self._frames[index]
        return None


class ReplaySource:
    """A KeypointSource backed by a recording, for running the real frame loop.

    The frame loop always estimates the face before the hand, so
    `estimate_face` advances to the next recorded frame and `estimate_hand`
    returns that same frame's hand.
    """

    def __init__(self, player: SessionPlayer):
        self.player = player
        self._index = -1

    def load(self):
        self._index = -1

    @property
    def exhausted(self) -> bool:
        return self._index >= self.player.frame_count - 1

    async def estimate_face(self, frame) -> Optional[PoseResult]:
        self._index += 1
        current = self.player.get_frame(self._index)
        if current is None:
            return None
        if not current.face_ok:
            raise DetectionError(f"recorded face estimation failed (frame {self._index})")
        return current.face_result()

    async def estimate_hand(self, frame) -> Optional[PoseResult]:
        current = self.player.get_frame(self._index)
        if current is None:
            return None
        if not current.hand_ok:
            raise DetectionError(f"recorded hand estimation failed (frame {self._index})")
        return current.hand_result()

    def close(self):
        pass


def replay(
    session: TrackingSession,
    player: SessionPlayer,
    start_time: float = 0.0,
) -> list[EngineEvent]:
    """Feed every recorded frame through `session.process` at its recorded time.

    Runs as fast as possible; no camera or model is involved. Events are
    flushed to the session's sinks after each frame. Recorded estimation
    failures leave detector state untouched, as they did live.
    """
    produced: list[EngineEvent] = []
    if session.config.session.enable_collectibles:
        session.field.start(start_time)
    for frame in player.play():
        now = start_time + frame.timestamp
        for subject, ok in (("face", frame.face_ok), ("hand", frame.hand_ok)):
            if not ok:
                session.metrics.record_failure(subject)
        produced += session.process(
            frame.face_result(), frame.hand_result(), now,
            face_ok=frame.face_ok, hand_ok=frame.hand_ok,
        )
        session.flush()
    logger.info("Replayed %d frames (%.1fs)", player.frame_count, player.duration)
    return produced
