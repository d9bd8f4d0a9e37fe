from .fixation import DEFAULT_MAX_DISTANCE, DEFAULT_MIN_DURATION_MS, detect_fixations
from .regions import DEFAULT_WINDOW_MS, check_fixations, check_frames, check_points

__all__ = [
    "DEFAULT_MAX_DISTANCE",
    "DEFAULT_MIN_DURATION_MS",
    "DEFAULT_WINDOW_MS",
    "check_fixations",
    "check_frames",
    "check_points",
    "detect_fixations",
]
