from dataclasses import dataclass
from typing import Iterable, Optional

from ..models import FixationEvent, Frame

DEFAULT_MAX_DISTANCE = 50.0
DEFAULT_MIN_DURATION_MS = 100.0


@dataclass(slots=True)
class _Cluster:
    x: float
    y: float
    start: float
    end: float
    count: int = 1

    def add(self, x: float, y: float, t: float) -> None:
        # Running mean: the new sample weighs 1/(1+count).
        weight = 1.0 / (1.0 + self.count)
        self.x += (x - self.x) * weight
        self.y += (y - self.y) * weight
        self.count += 1
        self.end = t

    def qualifies(self, min_duration_ms: float) -> bool:
        # Arrival times are epoch seconds; compare at microsecond resolution.
        span_ms = round((self.end - self.start) * 1000.0, 3)
        return self.count > 1 and span_ms >= min_duration_ms

    def to_event(self) -> FixationEvent:
        return FixationEvent(self.x, self.y, self.end)


def detect_fixations(
    frames: Iterable[Frame],
    max_distance: float = DEFAULT_MAX_DISTANCE,
    min_duration_ms: float = DEFAULT_MIN_DURATION_MS,
) -> list[FixationEvent]:
    """
    Groups consecutive gaze samples into fixations in a single forward pass.

    A sample further than `max_distance` pixels from the previous valid
    sample ends the current cluster and starts a new one; smaller
    micro-movements are folded into the cluster's running centroid. A
    cluster is reported when it has at least two samples and spans at least
    `min_duration_ms`, measured on frame arrival times. The same rule
    applies when a cluster is broken and when the last one is flushed.

    Args:
        frames: Frames in chronological order. No-gaze sentinels are skipped.
        max_distance: Break radius in pixels between consecutive samples.
        min_duration_ms: Minimum cluster span to count as a fixation.

    Returns:
        Fixation events, oldest first. Empty for empty or sparse input.
    """
    max_distance_sq = max_distance * max_distance

    events: list[FixationEvent] = []
    cluster: Optional[_Cluster] = None
    prev_x = prev_y = 0.0

    for frame in frames:
        if not frame.has_gaze:
            continue

        x, y, t = frame.avg.x, frame.avg.y, frame.received_at

        if cluster is None:
            cluster = _Cluster(x, y, t, t)
        else:
            dx, dy = x - prev_x, y - prev_y
            if dx * dx + dy * dy > max_distance_sq:
                if cluster.qualifies(min_duration_ms):
                    events.append(cluster.to_event())
                cluster = _Cluster(x, y, t, t)
            else:
                cluster.add(x, y, t)

        prev_x, prev_y = x, y

    if cluster is not None and cluster.qualifies(min_duration_ms):
        events.append(cluster.to_event())

    return events
