"""Keypoint sources and camera capture.

The landmark model is an external capability: the engine only needs
`estimate_face(frame)` and `estimate_hand(frame)` returning a PoseResult in
frame-pixel space, or None. MediaPipe Face Mesh and MediaPipe Hands provide
the default implementation; OpenCV provides the camera.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import numpy as np

from motion_engine.errors import CameraAccessError, DetectionError, ModelLoadError
from motion_engine.keypoints import NUM_FACE_LANDMARKS, PoseResult

try:
    import mediapipe as mp
except ImportError:
    mp = None

try:
    import cv2
except ImportError:
    cv2 = None

logger = logging.getLogger("motion_engine.detector")


class KeypointSource(Protocol):
    """What the frame loop consumes from a landmark model."""

    def load(self): ...

    async def estimate_face(self, frame) -> Optional[PoseResult]: ...

    async def estimate_hand(self, frame) -> Optional[PoseResult]: ...

    def close(self): ...


class Camera(Protocol):
    """An exclusively held capture device."""

    frame_size: tuple[int, int]

    def acquire(self): ...

    def read(self): ...

    def release(self): ...


def _to_pixels(landmarks, width: int, height: int, mirror: bool = False) -> np.ndarray:
    pts = np.array([[lm.x, lm.y, lm.z] for lm in landmarks], dtype=np.float32)
    pts[:, 0] *= width
    pts[:, 1] *= height
    pts[:, 2] *= width  # MediaPipe z shares the x scale
    if mirror:
        pts[:, 0] = width - pts[:, 0]
    return pts


class FaceDetector:
    """468-point face landmarks via MediaPipe Face Mesh (single face)."""

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        if mp is None:
            raise ModelLoadError(
                "mediapipe is required. Install with: pip install mediapipe"
            )
        try:
            self._mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=False,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            raise ModelLoadError(f"Face Mesh failed to initialize: {e}") from e

    def detect(self, frame_rgb: np.ndarray) -> Optional[PoseResult]:
        """Return the face in pixel coordinates, or None."""
        results = self._mesh.process(frame_rgb)
        if not results.multi_face_landmarks:
            return None
        h, w = frame_rgb.shape[:2]
        pts = _to_pixels(results.multi_face_landmarks[0].landmark, w, h)
        return PoseResult(kind="face", points=pts[:NUM_FACE_LANDMARKS])

    def close(self):
        self._mesh.close()


class HandDetector:
    """21-point hand landmarks via MediaPipe Hands (single hand).

    With `mirror=True` x is flipped so coordinates match a mirrored preview.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        mirror: bool = True,
    ):
        if mp is None:
            raise ModelLoadError(
                "mediapipe is required. Install with: pip install mediapipe"
            )
        self.mirror = mirror
        try:
            self._hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=1,
                model_complexity=0,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            raise ModelLoadError(f"MediaPipe Hands failed to initialize: {e}") from e

    def detect(self, frame_rgb: np.ndarray) -> Optional[PoseResult]:
        results = self._hands.process(frame_rgb)
        if not results.multi_hand_landmarks:
            return None
        h, w = frame_rgb.shape[:2]
        pts = _to_pixels(results.multi_hand_landmarks[0].landmark, w, h, mirror=self.mirror)
        score = 1.0
        if results.multi_handedness:
            score = float(results.multi_handedness[0].classification[0].score)
        return PoseResult(kind="hand", points=pts, score=score)

    def close(self):
        self._hands.close()


class MediaPipeKeypointSource:
    """Runs the MediaPipe detectors off the event loop."""

    def __init__(self, mirror_hands: bool = True, enable_hands: bool = True):
        self.mirror_hands = mirror_hands
        self.enable_hands = enable_hands
        self._face: Optional[FaceDetector] = None
        self._hand: Optional[HandDetector] = None

    def load(self):
        self._face = FaceDetector()
        if self.enable_hands:
            self._hand = HandDetector(mirror=self.mirror_hands)
        logger.info("Landmark models loaded (hands: %s)", self.enable_hands)

    async def estimate_face(self, frame) -> Optional[PoseResult]:
        if self._face is None or frame is None:
            return None
        try:
            return await asyncio.to_thread(self._face.detect, frame)
        except Exception as e:
            raise DetectionError(f"face estimation failed: {e}") from e

    async def estimate_hand(self, frame) -> Optional[PoseResult]:
        if self._hand is None or frame is None:
            return None
        try:
            return await asyncio.to_thread(self._hand.detect, frame)
        except Exception as e:
            raise DetectionError(f"hand estimation failed: {e}") from e

    def close(self):
        if self._face:
            self._face.close()
            self._face = None
        if self._hand:
            self._hand.close()
            self._hand = None


class OpenCVCamera:
    """Webcam capture returning RGB frames."""

    def __init__(self, index: int = 0, width: int = 640, height: int = 480):
        self.index = index
        self.frame_size = (width, height)
        self._capture = None

    def acquire(self):
        if cv2 is None:
            raise CameraAccessError(
                "opencv-python is required for camera capture. Install with: pip install opencv-python"
            )
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise CameraAccessError(f"Could not open camera {self.index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_size[0])
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_size[1])
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)) or self.frame_size[0]
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) or self.frame_size[1]
        self.frame_size = (width, height)
        self._capture = capture
        logger.info("Camera %d acquired at %dx%d", self.index, width, height)

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        ret, frame = self._capture.read()
        if not ret:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %d released", self.index)

    @property
    def is_open(self) -> bool:
        return self._capture is not None
