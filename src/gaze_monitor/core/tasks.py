import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from ..errors import ProtocolError, SendError, TransientDiscard
from ..models import Frame
from ..protocol import HEARTBEAT_REQUEST, FrameMessage, TrackerConnection
from ..protocol.messages import STATUS_OK
from ..sinks import LogSink
from ..utils.logging import ThrottledLogger
from .buffer import FrameBuffer

logger = logging.getLogger(__name__)


class BackgroundTask(ABC):
    """
    A long-running coroutine with an explicit stop signal.

    `stop()` sets the task's stop event, then gives the coroutine
    `stop_grace_s` seconds to notice it at its next wait boundary before
    cancelling it outright.
    """
    stop_grace_s: float = 1.0

    def __init__(self, name: str):
        self.name = name
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning(f"{self.name} task is already running.")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name=self.name)

    @abstractmethod
    async def run(self) -> None:
        """Loops until the stop event is set or an unrecoverable error occurs."""
        raise NotImplementedError

    async def stop(self) -> None:
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return

        done, _ = await asyncio.wait({task}, timeout=self.stop_grace_s)
        if task not in done:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def wait(self) -> None:
        """Waits for the task to finish on its own."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)


class HeartbeatTask(BackgroundTask):
    """
    Keeps the server-side session alive by sending a heartbeat every `interval_s`.

    Between sends the task waits on the stop event, so stopping it then is
    immediate. A send already in flight gets `stop_grace_s` to finish before
    it is cancelled, and any send failure ends the task.
    """
    stop_grace_s = 0.1

    def __init__(self, connection: TrackerConnection, interval_s: float):
        super().__init__("heartbeat")
        if interval_s <= 0:
            raise ValueError("interval_s must be positive.")
        self._connection = connection
        self._interval_s = interval_s
        self.sent = 0

    async def run(self) -> None:
        logger.info(f"Heartbeat started, interval {self._interval_s:.3f}s.")
        try:
            while True:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_s)
                    break
                except asyncio.TimeoutError:
                    pass

                try:
                    await self._connection.send_request(HEARTBEAT_REQUEST)
                except SendError as e:
                    logger.error(f"Heartbeat failed, stopping: {e}")
                    break
                self.sent += 1

        except asyncio.CancelledError:
            logger.info("Heartbeat task was cancelled.")
        finally:
            logger.info("Heartbeat stopped.")


class IngestionTask(BackgroundTask):
    """
    Reads push-mode messages and appends their frames to the buffer.

    The only writer to the buffer. A pending socket read cannot observe the
    stop event, so stopping cancels immediately after signalling.
    """
    stop_grace_s = 0.0

    def __init__(
        self,
        connection: TrackerConnection,
        buffer: FrameBuffer,
        sink: Optional[LogSink] = None,
    ):
        super().__init__("ingestion")
        self._connection = connection
        self._buffer = buffer
        self._sink = sink
        self._discard_logger = ThrottledLogger(logger, interval_sec=5.0)

        self.frames_received = 0
        self.discarded = 0
        self.error: Optional[Exception] = None

    async def run(self) -> None:
        logger.info("Frame ingestion started.")
        try:
            while not self._stop_event.is_set():
                message = await self._connection.receive_frame_message()
                received_at = time.time()

                try:
                    frame = frame_from_message(message, received_at)
                except TransientDiscard as e:
                    self.discarded += 1
                    if message.category == "heartbeat":
                        logger.debug("Heartbeat acknowledged.")
                    else:
                        self._discard_logger.warning("Discarded push message: %s", e)
                    continue

                self._buffer.append(frame)
                self.frames_received += 1

                if self._sink is not None:
                    await self._sink.send(message.to_log_record(received_at))

        except ProtocolError as e:
            self.error = e
            logger.error(f"Frame ingestion stopped: {e}")
        except asyncio.CancelledError:
            logger.info("Ingestion task was cancelled.")
        finally:
            logger.info(f"Frame ingestion stopped after {self.frames_received:,} frames.")


def frame_from_message(message: FrameMessage, received_at: float) -> Frame:
    """
    Extracts the frame carried by a push-mode message.

    Raises:
        TransientDiscard: the message is a heartbeat echo, carries a
            non-success status code, or has no frame.
    """
    if message.statuscode != STATUS_OK:
        raise TransientDiscard(f"status code {message.statuscode}")
    if message.category == "heartbeat":
        raise TransientDiscard("heartbeat acknowledgement")
    if message.frame is None:
        raise TransientDiscard(f"'{message.category}/{message.request}' message has no frame")
    return message.frame.to_frame(received_at)
