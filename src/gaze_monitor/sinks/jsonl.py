import asyncio
import logging
from pathlib import Path
from typing import Optional, TextIO

from .base import LogSink
from ..protocol.messages import encode_record
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class _EndOfLog:
    """Queued by `close()` behind the last record."""
    __slots__ = ()

    def __repr__(self) -> str:
        return "<EndOfLog>"

_END = _EndOfLog()


class JsonlLogSink(LogSink):
    """
    Appends one JSON document per line to a log file.

    Records are queued by `send()` and written in batches by a background
    worker, with file I/O offloaded to a thread so the ingestion loop never
    waits on the disk.
    """

    def __init__(
        self,
        path: Path,
        queue_size: int = 10_000,
        drop_when_full: bool = True,
        max_batch_size: int = 256,
    ) -> None:
        self.path = Path(path)
        self.drop_when_full = drop_when_full
        self.max_batch_size = max_batch_size

        self._queue: asyncio.Queue[dict | _EndOfLog] = asyncio.Queue(maxsize=queue_size)
        self._worker_task: Optional[asyncio.Task] = None
        self._file: Optional[TextIO] = None

        # Stats
        self._total_records = 0
        self._total_dropped = 0
        self._drop_logger = ThrottledLogger(logger, interval_sec=1)

    @property
    def total_records(self) -> int:
        return self._total_records

    @property
    def total_dropped(self) -> int:
        return self._total_dropped

    async def start(self) -> None:
        if self._worker_task is not None:
            return
        self._file = await asyncio.to_thread(self._open_sync)
        self._worker_task = asyncio.create_task(self._worker())
        logger.info(f"Logging to: {self.path}")

    async def send(self, record: dict) -> None:
        """Push a record to the queue. Handles backpressure or dropping."""
        if self.drop_when_full:
            try:
                self._queue.put_nowait(record)
            except asyncio.QueueFull:
                self._total_dropped += 1
                self._drop_logger.warning("Log queue is full, dropping record.")
        else:
            await self._queue.put(record)

    async def _worker(self) -> None:
        """Drains the queue greedily and writes each batch."""
        queue = self._queue
        batch: list[dict] = []

        while True:
            item = await queue.get()
            if item is _END:
                break
            batch.append(item)

            finished = False
            while not queue.empty() and len(batch) < self.max_batch_size:
                next_item = queue.get_nowait()
                if next_item is _END:
                    finished = True
                    break
                batch.append(next_item)

            await self._flush(batch)
            batch = []
            if finished:
                return

    async def _flush(self, batch: list[dict]) -> None:
        if not batch:
            return
        try:
            self._total_records += await asyncio.to_thread(self._write_sync, batch)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Log write failed: {e}")
            self._total_dropped += len(batch)

    def _open_sync(self) -> TextIO:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return self.path.open("a", encoding="utf-8")

    def _write_sync(self, batch: list[dict]) -> int:
        self._file.write("".join(encode_record(r) + "\n" for r in batch))
        self._file.flush()
        return len(batch)

    async def close(self) -> None:
        if self._worker_task:
            await self._queue.put(_END)
            await self._worker_task
            self._worker_task = None

        if self._file:
            await asyncio.to_thread(self._file.close)
            self._file = None
            logger.info(f"Log closed. Written: {self._total_records:,}, Dropped: {self._total_dropped:,}")
