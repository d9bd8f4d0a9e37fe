from .connection import TrackerConnection, connect
from .messages import (
    HEARTBEAT_REQUEST,
    PUSH_MODE_REQUEST,
    STATUS_REQUEST,
    FrameLogRecord,
    FrameMessage,
    Response,
    TrackerRequest,
    TrackerStatus,
    WireFrame,
)

__all__ = [
    "HEARTBEAT_REQUEST",
    "PUSH_MODE_REQUEST",
    "STATUS_REQUEST",
    "FrameLogRecord",
    "FrameMessage",
    "Response",
    "TrackerConnection",
    "TrackerRequest",
    "TrackerStatus",
    "WireFrame",
    "connect",
]
