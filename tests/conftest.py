import asyncio
import json
import time

import pytest

from gaze_monitor.models import Frame, Point
from gaze_monitor.sinks import LogSink

DEFAULT_STATUS = {
    "push": False,
    "iscalibrated": True,
    "heartbeatinterval": 3000,
    "screenresw": 64,
    "screenresh": 48,
    "framerate": 50,
}


class FakeTrackerServer:
    """In-process stand-in for the tracker server, speaking the same line protocol."""

    def __init__(self, status=None, statuscode=200):
        self.status = dict(DEFAULT_STATUS if status is None else status)
        self.statuscode = statuscode
        self.requests = []
        self.heartbeats = 0
        self.closed_connections = 0
        self.push_enabled = asyncio.Event()
        self.port = None
        self._server = None
        self._writers = []

    async def start(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader, writer):
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                message = json.loads(line)
                self.requests.append(message)
                reply = self._reply_for(message)
                if reply is not None:
                    writer.write((json.dumps(reply) + "\n").encode())
                    await writer.drain()
        except ConnectionError:
            pass
        finally:
            self.closed_connections += 1
            writer.close()

    def _reply_for(self, message):
        category = message.get("category")
        request = message.get("request")
        if category == "heartbeat":
            self.heartbeats += 1
            return {"category": "heartbeat", "statuscode": 200}
        if category == "tracker" and request == "get":
            return {"category": "tracker", "request": "get", "statuscode": self.statuscode, "values": self.status}
        if category == "tracker" and request == "set":
            self.push_enabled.set()
            return {"category": "tracker", "request": "set", "statuscode": 200}
        return None

    async def send(self, document):
        await self.send_raw((json.dumps(document) + "\n").encode())

    async def send_raw(self, data: bytes):
        for writer in self._writers:
            writer.write(data)
            await writer.drain()

    async def disconnect(self):
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def stop(self):
        await self.disconnect()
        self._server.close()
        await asyncio.wait_for(self._server.wait_closed(), timeout=2.0)


class MemorySink(LogSink):
    def __init__(self):
        self.records = []

    async def start(self):
        pass

    async def send(self, record):
        self.records.append(record)

    async def close(self):
        pass


def frame_message(x, y, statuscode=200, category="tracker"):
    return {
        "category": category,
        "request": "get",
        "statuscode": statuscode,
        "values": {
            "frame": {
                "timestamp": "2015-01-01 10:00:00.000",
                "time": 1234,
                "fix": False,
                "state": 7,
                "raw": {"x": x, "y": y},
                "avg": {"x": x, "y": y},
                "lefteye": {"raw": {"x": x, "y": y}, "avg": {"x": x, "y": y}, "psize": 20.5, "pcenter": {"x": 0.4, "y": 0.5}},
                "righteye": {"raw": {"x": x, "y": y}, "avg": {"x": x, "y": y}, "psize": 21.0, "pcenter": {"x": 0.6, "y": 0.5}},
            }
        },
    }


def make_frame(x, y, received_at=None):
    if received_at is None:
        received_at = time.time()
    return Frame(
        timestamp="",
        time=0.0,
        is_fixated=False,
        state=0,
        raw=Point(x, y),
        avg=Point(x, y),
        left_eye=None,
        right_eye=None,
        received_at=received_at,
    )


async def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
async def tracker():
    server = FakeTrackerServer()
    await server.start()
    yield server
    await server.stop()
