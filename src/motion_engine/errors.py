"""Exception hierarchy for MotionEngine."""


class MotionEngineError(Exception):
    """Base class for all engine errors."""


class CameraAccessError(MotionEngineError):
    """Camera permission denied or no capture device. Fatal to the session."""


class ModelLoadError(MotionEngineError):
    """The landmark model failed to initialize. Tracking cannot start."""


class DetectionError(MotionEngineError):
    """Transient per-frame inference failure. Recovered inside the frame loop."""
