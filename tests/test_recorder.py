"""Tests for session recording and replay."""

import asyncio
import json

import numpy as np
import pytest

from motion_engine.config import EngineConfig
from motion_engine.errors import DetectionError
from motion_engine.events import BobEvent
from motion_engine.keypoints import PoseResult
from motion_engine.recorder import ReplaySource, SessionPlayer, SessionRecorder, replay
from motion_engine.session import TrackingSession

from test_session import FakeSource, make_session, tick_all


def make_face(nose_y):
    pts = np.full((468, 3), [320.0, 200.0, 0.0], dtype=np.float32)
    pts[1] = [320.0, nose_y, 0]
    return PoseResult(kind="face", points=pts)


def make_hand():
    return PoseResult(kind="hand", points=np.random.rand(21, 3).astype(np.float32) * 300 + 100)


def record_bobs(ys, dt=0.1):
    rec = SessionRecorder(frame_size=(640, 480))
    rec.start()
    for i, y in enumerate(ys):
        face = make_face(y) if y is not None else None
        rec.add_frame(face, make_hand() if i % 2 else None, 50.0 + i * dt)
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = record_bobs([100, 90, 100])
        assert rec.frame_count == 3
        assert rec.duration == pytest.approx(0.2)

    def test_not_recording_ignores_frames(self):
        rec = SessionRecorder()
        rec.add_frame(make_face(100), None, 0.0)
        assert rec.frame_count == 0

    def test_timestamps_relative_to_first_frame(self):
        rec = record_bobs([100, 90])
        player = SessionPlayer(list(rec._frames))
        assert [f.timestamp for f in player.play()] == pytest.approx([0.0, 0.1])

    def test_save_and_load_json(self, tmp_path):
        rec = record_bobs([100, None, 90])
        path = tmp_path / "walk.json"
        rec.save(path)

        player = SessionPlayer.load(path)
        assert player.frame_count == 3
        assert player.frame_size == (640, 480)
        frames = list(player.play())
        assert frames[1].face is None
        assert frames[0].hand is None
        assert frames[1].hand_result().points.shape == (21, 3)
        assert frames[2].face_result().points[1, 1] == pytest.approx(90.0)

    def test_save_and_load_npz(self, tmp_path):
        rec = record_bobs([100, None, 90, 100])
        path = tmp_path / "walk.npz"
        rec.save_compact(path)

        player = SessionPlayer.load(path)
        assert player.frame_count == 4
        frames = list(player.play())
        assert frames[1].face is None
        assert frames[2].face_result().points[1, 1] == pytest.approx(90.0)
        assert frames[3].hand_result() is not None
        assert player.duration == pytest.approx(0.3)

    def test_get_frame_bounds(self):
        player = SessionPlayer(list(record_bobs([100])._frames))
        assert player.get_frame(0) is not None
        assert player.get_frame(1) is None
        assert player.get_frame(-1) is None


class TestReplay:
    def test_replay_counts_bobs(self):
        rec = record_bobs([100, 94, 88, 94, 100, 106])
        player = SessionPlayer(list(rec._frames))
        cfg = EngineConfig()
        cfg.session.enable_collectibles = False
        session = TrackingSession(source=ReplaySource(player), config=cfg)

        events = replay(session, player)
        assert session.bob.bob_count == 1
        assert sum(isinstance(e, BobEvent) for e in events) == 1
        assert len(session.events) == 0

    def test_replay_source_pairs_face_and_hand(self):
        rec = record_bobs([100, 90, 80])
        player = SessionPlayer(list(rec._frames))
        source = ReplaySource(player)
        source.load()

        async def pull():
            pairs = []
            while not source.exhausted:
                face = await source.estimate_face(None)
                hand = await source.estimate_hand(None)
                pairs.append((face, hand))
            return pairs

        pairs = asyncio.run(pull())
        assert len(pairs) == 3
        assert pairs[0][1] is None and pairs[1][1] is not None
        assert [p[0].points[1, 1] for p in pairs] == pytest.approx([100.0, 90.0, 80.0])

    def test_replay_source_past_end(self):
        source = ReplaySource(SessionPlayer([]))
        assert asyncio.run(source.estimate_face(None)) is None
        assert asyncio.run(source.estimate_hand(None)) is None


class TestFailedEstimates:
    """A failed estimation must replay as a failure, not as "no face"."""

    FACES = [make_face(100), make_face(90), DetectionError("inference failed"), make_face(100)]

    def record_live(self):
        session = make_session(FakeSource(faces=list(self.FACES)))
        rec = SessionRecorder()
        rec.start()
        session.recorder = rec
        tick_all(session, len(self.FACES))
        rec.stop()
        return session, rec

    def test_recorded_flags(self):
        _, rec = self.record_live()
        frames = rec._frames
        assert [f.face_ok for f in frames] == [True, True, False, True]
        assert frames[2].face is None
        assert all(f.hand_ok for f in frames)

    @pytest.mark.parametrize("name,save", [
        ("live.json", SessionRecorder.save),
        ("live.npz", SessionRecorder.save_compact),
    ])
    def test_replay_matches_live(self, tmp_path, name, save):
        live, rec = self.record_live()
        assert live.bob.bob_count == 1
        save(rec, tmp_path / name)

        player = SessionPlayer.load(tmp_path / name)
        assert [f.face_ok for f in player.play()] == [True, True, False, True]
        session = TrackingSession(source=ReplaySource(player))
        replay(session, player)
        assert session.bob.bob_count == live.bob.bob_count
        assert session.metrics.failures == {"face": 1}

    def test_replay_source_raises_for_failed_frame(self):
        _, rec = self.record_live()
        player = SessionPlayer(list(rec._frames))
        session = make_session(ReplaySource(player))
        tick_all(session, player.frame_count)
        assert session.bob.bob_count == 1
        assert session.metrics.failures == {"face": 1}

    def test_old_recordings_default_to_ok(self, tmp_path):
        path = tmp_path / "old.json"
        path.write_text(json.dumps({
            "version": 1,
            "frame_size": [640, 480],
            "frames": [{"timestamp": 0.0, "face": None, "hand": None}],
        }))
        frame = SessionPlayer.load(path).get_frame(0)
        assert frame.face_ok and frame.hand_ok
