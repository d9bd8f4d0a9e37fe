from .buffer import FrameBuffer
from .session import TrackerSession
from .state import SessionState
from .tasks import BackgroundTask, HeartbeatTask, IngestionTask, frame_from_message

__all__ = [
    "BackgroundTask",
    "FrameBuffer",
    "HeartbeatTask",
    "IngestionTask",
    "SessionState",
    "TrackerSession",
    "frame_from_message",
]
