from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True, frozen=True)
class Point:
    """A 2-D coordinate in screen space (pixels)."""
    x: float
    y: float


@dataclass(slots=True, frozen=True)
class EyeData:
    """Per-eye measurement within a frame."""
    raw: Point
    avg: Point
    pupil_size: float
    pupil_center: Point


@dataclass(slots=True, frozen=True)
class Frame:
    """
    A standardized, immutable container for a single gaze sample.

    `received_at` is wall-clock time (seconds since the epoch) stamped when
    the frame arrived, not a value supplied by the tracker. Every
    time-windowed computation downstream uses it.
    """
    timestamp: str
    time: float
    is_fixated: bool
    state: int
    raw: Point
    avg: Point
    left_eye: Optional[EyeData]
    right_eye: Optional[EyeData]
    received_at: float

    @property
    def has_gaze(self) -> bool:
        """False for the tracker's "no valid gaze" sentinel (avg at or below the origin)."""
        return not (self.avg.x <= 0.0 and self.avg.y <= 0.0)


@dataclass(slots=True, frozen=True)
class FixationEvent:
    """Smoothed centroid of a fixation and the arrival time of its last frame."""
    x: float
    y: float
    time: float


@dataclass(slots=True, frozen=True)
class CheckRegion:
    """A named, axis-aligned target rectangle in screen space."""
    x: float
    y: float
    width: float
    height: float
    name: str

    def contains(self, x: float, y: float) -> bool:
        # Bounds are inclusive on all four edges.
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


CheckResult = dict[str, bool]
