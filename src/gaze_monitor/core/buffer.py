import math
import threading
from collections import deque

from ..models import Frame


class FrameBuffer:
    """
    Bounded, time-ordered store of the most recent frames.

    Appending to a full buffer evicts the oldest frame. One writer (the
    ingestion task) and any number of readers may use it concurrently,
    including readers on other threads: every read returns a copied snapshot
    taken under the lock, never a live view.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer.")
        self._frames: deque[Frame] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @classmethod
    def for_retention(cls, retention_s: float, frame_interval_ms: float) -> "FrameBuffer":
        """Sizes the buffer to hold roughly `retention_s` seconds of frames."""
        if frame_interval_ms <= 0:
            raise ValueError("frame_interval_ms must be positive.")
        capacity = max(1, math.ceil(retention_s * 1000.0 / frame_interval_ms))
        return cls(capacity)

    @property
    def capacity(self) -> int:
        return self._frames.maxlen

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def append(self, frame: Frame) -> None:
        with self._lock:
            self._frames.append(frame)

    def snapshot(self) -> tuple[Frame, ...]:
        """All buffered frames, oldest first."""
        with self._lock:
            return tuple(self._frames)

    def since(self, received_after: float) -> tuple[Frame, ...]:
        """Frames that arrived at or after `received_after` (epoch seconds)."""
        return tuple(f for f in self.snapshot() if f.received_at >= received_after)

    def clear(self) -> None:
        with self._lock:
            self._frames.clear()
