import asyncio
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..errors import ConnectError, ConnectionClosedError, ProtocolError, SendError
from .messages import (
    PUSH_MODE_REQUEST,
    STATUS_REQUEST,
    FrameMessage,
    Response,
    TrackerRequest,
    TrackerStatus,
)

logger = logging.getLogger(__name__)

# Upper bound for one line or one buffered JSON value; frames are well under 1 KiB.
_LINE_LIMIT = 1 << 20


class TrackerConnection:
    """
    Owns the TCP stream to the tracker server and its JSON encoding.

    The protocol is strictly request/response until push mode is enabled.
    After that the server streams frame messages unsolicited, so generic
    request/response exchanges are refused and reads go through
    `receive_frame_message()`.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer
        self._decoder = json.JSONDecoder()
        self._text = ""

        self._request_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

        self._push_mode = False
        self._closed = False
        self.status: Optional[TrackerStatus] = None

    @classmethod
    async def connect(cls, host: str, port: int) -> "TrackerConnection":
        """
        Opens the TCP connection and performs the status handshake.

        Raises:
            ConnectError: the socket cannot be opened, the server answers with
                a non-success status, reports it is not calibrated, or omits
                one of the required numeric fields.
        """
        logger.info(f"Connecting to tracker server at {host}:{port}...")
        try:
            reader, writer = await asyncio.open_connection(host, port, limit=_LINE_LIMIT)
        except OSError as e:
            raise ConnectError(f"Cannot connect to tracker server at {host}:{port}: {e}") from e

        conn = cls(reader, writer)
        try:
            conn.status = await conn._handshake()
        except BaseException:
            await conn.close()
            raise

        logger.info(
            f"Tracker connected: {conn.status.screen_width}x{conn.status.screen_height} px, "
            f"{conn.status.framerate:g} fps, heartbeat {conn.status.heartbeat_interval_ms:g} ms."
        )
        return conn

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def push_mode(self) -> bool:
        return self._push_mode

    async def _handshake(self) -> TrackerStatus:
        try:
            response = await self.request_response(STATUS_REQUEST)
        except (SendError, ProtocolError) as e:
            raise ConnectError(f"Status request failed: {e}") from e

        if not response.ok:
            raise ConnectError(f"Server response code is not 200 ({response.statuscode}).")

        try:
            status = TrackerStatus.model_validate(response.values)
        except ValidationError as e:
            raise ConnectError(f"Invalid status response: {e}") from e

        if not status.iscalibrated:
            raise ConnectError("Server is not calibrated.")
        return status

    # --- Primitives ---

    async def send_request(self, message: TrackerRequest) -> None:
        """Writes one request as a single JSON line."""
        if self._closed:
            raise SendError("Connection is closed.")

        async with self._write_lock:
            try:
                self._writer.write(message.to_wire())
                await self._writer.drain()
            except (OSError, RuntimeError) as e:
                raise SendError(f"Failed to send '{message.category}' request: {e}") from e

    async def receive_response(self) -> Response:
        """Waits for one complete JSON object and validates it as a generic response."""
        document = await self._next_document()
        try:
            return Response.model_validate(document)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected response from tracker: {e}") from e

    async def receive_frame_message(self) -> FrameMessage:
        """Waits for one push-mode message."""
        document = await self._next_document()
        try:
            return FrameMessage.model_validate(document)
        except ValidationError as e:
            raise ProtocolError(f"Unexpected push message from tracker: {e}") from e

    async def request_response(self, message: TrackerRequest) -> Response:
        """
        Sends a request and waits for its reply.

        Replies of another category (heartbeat echoes) are skipped, so a
        keepalive running alongside cannot be mistaken for the answer.
        """
        async with self._request_lock:
            if self._push_mode:
                raise ProtocolError("Request/response is unavailable while push mode is active.")

            await self.send_request(message)
            while True:
                response = await self.receive_response()
                if response.category == message.category:
                    return response
                logger.debug(f"Skipping '{response.category}' reply while awaiting '{message.category}'.")

    async def enable_push_mode(self) -> None:
        """Switches the server to streaming frames. Irreversible for this connection."""
        async with self._request_lock:
            if self._push_mode:
                return
            await self.send_request(PUSH_MODE_REQUEST)
            self._push_mode = True
        logger.info("Push mode enabled.")

    async def close(self) -> None:
        """Releases the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, RuntimeError) as e:
            logger.debug(f"Error while closing tracker socket: {e}")
        logger.info("Tracker connection closed.")

    # --- Decoding ---

    async def _next_document(self) -> Any:
        """
        Decodes the next JSON value from the stream.

        Values may span several lines or share one. Text after a value stays
        buffered for the next call. A decode error at the end of the buffered
        text means the value is incomplete, so another line is read; any other
        error is malformed input.
        """
        while True:
            text = self._text.lstrip()
            if text:
                try:
                    document, end = self._decoder.raw_decode(text)
                except json.JSONDecodeError as e:
                    if e.pos < len(text.rstrip()):
                        self._text = ""
                        raise ProtocolError(f"Malformed JSON from tracker: {e}") from e
                else:
                    self._text = text[end:]
                    return document

            if len(text) > _LINE_LIMIT:
                self._text = ""
                raise ProtocolError(f"Incomplete JSON value exceeds {_LINE_LIMIT:,} bytes.")
            self._text = text + await self._read_line()

    async def _read_line(self) -> str:
        try:
            line = await self._reader.readline()
        except (OSError, ValueError) as e:
            raise ProtocolError(f"Failed to read from tracker: {e}") from e

        if not line:
            raise ConnectionClosedError("Tracker server closed the connection.")

        try:
            return line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Tracker sent non UTF-8 data: {e}") from e


async def connect(host: str, port: int) -> TrackerConnection:
    return await TrackerConnection.connect(host, port)
