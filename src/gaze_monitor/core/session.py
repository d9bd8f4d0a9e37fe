import logging
import time
from pathlib import Path
from typing import Optional

import numpy as np

from ..analysis import check_fixations, check_frames, detect_fixations
from ..configs import CheckConfig, load_check_config
from ..errors import RenderError
from ..models import CheckResult, FixationEvent
from ..protocol import TrackerConnection, connect
from ..render import DEFAULT_BRUSH_SIZE, load_image, radial_brush, render_png
from ..sinks import LogSink
from .buffer import FrameBuffer
from .state import SessionState
from .tasks import HeartbeatTask, IngestionTask

logger = logging.getLogger(__name__)


class TrackerSession:
    """
    One live connection to the tracker server and everything that hangs off it.

    Owns the connection, the frame buffer and the two background tasks
    (heartbeat and ingestion), and answers the read-only queries the HTTP
    service exposes. Queries work on buffer snapshots, so they never block
    ingestion and never fail on an empty buffer.
    """

    def __init__(
        self,
        connection: TrackerConnection,
        buffer: FrameBuffer,
        check_config: Optional[CheckConfig] = None,
        brush_path: Optional[Path] = None,
        brush_size: int = DEFAULT_BRUSH_SIZE,
        sink: Optional[LogSink] = None,
        default_window_ms: float = 10_000,
    ):
        if connection.status is None:
            raise ValueError("connection has not completed the status handshake.")

        self.connection = connection
        self.buffer = buffer
        self.check_config = check_config or CheckConfig()
        self.default_window_ms = default_window_ms
        self.state = SessionState.CONNECTED

        self._brush_path = brush_path
        self._brush_size = brush_size
        self._brush: Optional[np.ndarray] = None

        # Half the server's interval keeps the session alive with margin.
        interval_s = connection.status.heartbeat_interval_ms / 2000.0
        self.heartbeat = HeartbeatTask(connection, interval_s)
        self.ingestion = IngestionTask(connection, buffer, sink)

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        retention_s: float = 30.0,
        **kwargs,
    ) -> "TrackerSession":
        """
        Connects, sizes the buffer from the reported frame rate and starts the heartbeat.

        Raises:
            ConnectError: see `TrackerConnection.connect()`.
        """
        connection = await connect(host, port)
        try:
            buffer = FrameBuffer.for_retention(retention_s, connection.status.frame_interval_ms)
            logger.info(f"Frame buffer holds {buffer.capacity:,} frames ({retention_s:g}s).")
            session = cls(connection, buffer, **kwargs)
        except BaseException:
            await connection.close()
            raise

        session.heartbeat.start()
        return session

    @property
    def width(self) -> int:
        return self.connection.status.screen_width

    @property
    def height(self) -> int:
        return self.connection.status.screen_height

    # --- Lifecycle ---

    async def start_ingestion(self) -> None:
        """Enables push mode (once) and starts reading frames into the buffer."""
        if self.state is SessionState.CLOSED:
            raise RuntimeError("Session is closed.")
        await self.connection.enable_push_mode()
        self.ingestion.start()
        self.state = SessionState.STREAMING

    async def stop_ingestion(self) -> None:
        await self.ingestion.stop()

    async def close(self) -> None:
        """Stops ingestion, then the heartbeat, then closes the socket and drops the buffer."""
        if self.state is SessionState.CLOSED:
            return
        logger.info("Closing tracker session...")
        await self.ingestion.stop()
        await self.heartbeat.stop()
        await self.connection.close()
        self.buffer.clear()
        self.state = SessionState.CLOSED
        logger.info("Tracker session closed.")

    async def __aenter__(self) -> "TrackerSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- Configuration ---

    def reload_check_config(self, path: Path) -> CheckConfig:
        """
        Re-reads the check configuration. The current one is kept if the file is invalid.

        Raises:
            ConfigError: the file exists but cannot be parsed.
        """
        self.check_config = load_check_config(path)
        return self.check_config

    @property
    def brush(self) -> np.ndarray:
        if self._brush is None:
            if self._brush_path is not None:
                self._brush = load_image(self._brush_path)
            else:
                self._brush = radial_brush(self._brush_size)
        return self._brush

    # --- Queries ---

    def fixations(self) -> list[FixationEvent]:
        settings = self.check_config.fixation
        return detect_fixations(
            self.buffer.snapshot(),
            max_distance=settings.max_distance,
            min_duration_ms=settings.min_duration_ms,
        )

    def heatmap_png(self) -> bytes:
        """
        Renders every buffered frame onto a screen-sized canvas.

        Raises:
            RenderError: the brush cannot be loaded, or the tracker reported
                no usable screen size.
        """
        frames = self.buffer.snapshot()
        try:
            return render_png(frames, self.width, self.height, self.brush)
        except ValueError as e:
            raise RenderError(f"Cannot render heat-map: {e}") from e

    def check(self, window_ms: Optional[float] = None, now: Optional[float] = None) -> CheckResult:
        """Which target regions were glanced at within the window."""
        if window_ms is None:
            window_ms = self.default_window_ms
        if now is None:
            now = time.time()
        return check_frames(self.check_config.regions, self.buffer.snapshot(), window_ms, now)

    def check_fixation(self, window_ms: Optional[float] = None, now: Optional[float] = None) -> CheckResult:
        """Which target regions were fixated within the window."""
        if window_ms is None:
            window_ms = self.default_window_ms
        if now is None:
            now = time.time()
        return check_fixations(self.check_config.regions, self.fixations(), window_ms, now)
