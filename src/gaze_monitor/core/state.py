from enum import Enum, auto


class SessionState(Enum):
    """Lifecycle of a tracker session."""
    CONNECTED = auto()  # Handshake done, heartbeat running.
    STREAMING = auto()  # Push mode on, frames flowing into the buffer.
    CLOSED = auto()
