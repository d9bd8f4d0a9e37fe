"""
Typed schema for the tracker server's JSON protocol.

Every message read from the socket is validated against one of these models
at decode time, so the rest of the pipeline never touches untyped dicts.
"""
import json
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from ..models import EyeData, Frame, Point

STATUS_OK = 200

# Log stamps may carry nanoseconds; datetimes hold microseconds.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")
_DATETIME = TypeAdapter(datetime)

STATUS_FIELDS = [
    "push",
    "iscalibrated",
    "heartbeatinterval",
    "screenresw",
    "screenresh",
    "framerate",
]


# --- Requests ---

class TrackerRequest(BaseModel):
    """A request sent to the tracker server. Unset fields are omitted on the wire."""
    model_config = ConfigDict(frozen=True)

    category: str
    request: Optional[str] = None
    values: Any = None

    def to_wire(self) -> bytes:
        return (self.model_dump_json(exclude_none=True) + "\n").encode("utf-8")


STATUS_REQUEST = TrackerRequest(category="tracker", request="get", values=STATUS_FIELDS)
PUSH_MODE_REQUEST = TrackerRequest(
    category="tracker", request="set", values={"push": True, "version": 1}
)
HEARTBEAT_REQUEST = TrackerRequest(category="heartbeat")


# --- Responses ---

class Response(BaseModel):
    """Generic reply to a request/response exchange."""
    category: str = ""
    request: Optional[str] = None
    statuscode: int = 0
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("values", mode="before")
    @classmethod
    def _null_values(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def ok(self) -> bool:
        return self.statuscode == STATUS_OK


class TrackerStatus(BaseModel):
    """
    Values returned by the status request issued while connecting.

    Numeric fields are validated strictly: a missing or non-numeric value is
    a handshake failure.
    """
    push: bool = False
    iscalibrated: bool = Field(strict=True)
    heartbeatinterval: float = Field(strict=True, gt=0, description="Server heartbeat timeout in ms.")
    screenresw: float = Field(strict=True, ge=0)
    screenresh: float = Field(strict=True, ge=0)
    framerate: float = Field(strict=True, gt=0, description="Frames per second.")

    @property
    def screen_width(self) -> int:
        return int(self.screenresw)

    @property
    def screen_height(self) -> int:
        return int(self.screenresh)

    @property
    def heartbeat_interval_ms(self) -> float:
        return self.heartbeatinterval

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.framerate


# --- Push-mode frames ---

class WirePoint(BaseModel):
    x: float = 0.0
    y: float = 0.0

    def to_point(self) -> Point:
        return Point(self.x, self.y)


class WireEyeData(BaseModel):
    raw: WirePoint = Field(default_factory=WirePoint)
    avg: WirePoint = Field(default_factory=WirePoint)
    psize: float = 0.0
    pcenter: WirePoint = Field(default_factory=WirePoint)

    def to_eye_data(self) -> EyeData:
        return EyeData(
            raw=self.raw.to_point(),
            avg=self.avg.to_point(),
            pupil_size=self.psize,
            pupil_center=self.pcenter.to_point(),
        )


class WireFrame(BaseModel):
    """One gaze sample as sent by the tracker. A missing `avg` reads as the no-gaze sentinel."""
    timestamp: str = ""
    time: float = 0.0
    fix: bool = False
    state: int = 0
    raw: WirePoint = Field(default_factory=WirePoint)
    avg: WirePoint = Field(default_factory=WirePoint)
    lefteye: Optional[WireEyeData] = None
    righteye: Optional[WireEyeData] = None

    def to_frame(self, received_at: float) -> Frame:
        return Frame(
            timestamp=self.timestamp,
            time=self.time,
            is_fixated=self.fix,
            state=self.state,
            raw=self.raw.to_point(),
            avg=self.avg.to_point(),
            left_eye=self.lefteye.to_eye_data() if self.lefteye else None,
            right_eye=self.righteye.to_eye_data() if self.righteye else None,
            received_at=received_at,
        )


class FrameValues(BaseModel):
    frame: Optional[WireFrame] = None


class FrameMessage(BaseModel):
    """A message read while push mode is active: a frame, a heartbeat echo or a plain reply."""
    category: str = ""
    request: Optional[str] = None
    statuscode: int = 0
    values: FrameValues = Field(default_factory=FrameValues)

    @field_validator("values", mode="before")
    @classmethod
    def _null_values(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def frame(self) -> Optional[WireFrame]:
        return self.values.frame

    def to_log_record(self, received_at: float) -> dict:
        """JSON-ready log line: the message as received plus the local arrival time."""
        record = self.model_dump(mode="json", exclude_none=True)
        record["received_at"] = received_at
        return record


class FrameLogRecord(FrameMessage):
    """
    A frame message read back from the log file.

    Older logs have no top-level `received_at`; there the arrival time is the
    RFC 3339 `GoTime` stamp inside the frame.
    """
    received_at: float

    @model_validator(mode="before")
    @classmethod
    def _arrival_from_frame_stamp(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "received_at" in data:
            return data
        values = data.get("values")
        frame = values.get("frame") if isinstance(values, dict) else None
        stamp = frame.get("GoTime") if isinstance(frame, dict) else None
        if not isinstance(stamp, str):
            return data
        try:
            arrival = _DATETIME.validate_python(_EXCESS_FRACTION.sub(r"\1", stamp))
        except ValidationError as e:
            raise ValueError(f"invalid GoTime '{stamp}': {e.error_count()} errors") from e
        return {**data, "received_at": arrival.timestamp()}


def encode_record(record: dict) -> str:
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False)
