import time
from typing import Iterable, Optional

from ..models import CheckRegion, CheckResult, FixationEvent, Frame

DEFAULT_WINDOW_MS = 10_000


def check_points(
    regions: Iterable[CheckRegion], points: Iterable[tuple[float, float]]
) -> CheckResult:
    """
    Maps every region name to whether any point fell inside it.

    Regions that no point reached are reported as False, never omitted.
    """
    regions = list(regions)
    result: CheckResult = {region.name: False for region in regions}
    for x, y in points:
        for region in regions:
            if region.contains(x, y):
                result[region.name] = True
    return result


def _cutoff(window_ms: float, now: Optional[float]) -> float:
    if now is None:
        now = time.time()
    return now - window_ms / 1000.0


def check_frames(
    regions: Iterable[CheckRegion],
    frames: Iterable[Frame],
    window_ms: float = DEFAULT_WINDOW_MS,
    now: Optional[float] = None,
) -> CheckResult:
    """Was any region glanced at, even for one frame, in the last `window_ms`?"""
    cutoff = _cutoff(window_ms, now)
    points = (
        (f.avg.x, f.avg.y) for f in frames if f.has_gaze and f.received_at >= cutoff
    )
    return check_points(regions, points)


def check_fixations(
    regions: Iterable[CheckRegion],
    events: Iterable[FixationEvent],
    window_ms: float = DEFAULT_WINDOW_MS,
    now: Optional[float] = None,
) -> CheckResult:
    """Was any region fixated in the last `window_ms`?"""
    cutoff = _cutoff(window_ms, now)
    points = ((e.x, e.y) for e in events if e.time >= cutoff)
    return check_points(regions, points)
