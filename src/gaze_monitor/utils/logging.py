import time
import logging

class ThrottledLogger:
    """
    Rate-limits a repeated warning to one line per interval.

    Occurrences swallowed in between are counted and reported with the
    next line that gets through.
    """
    def __init__(self, logger: logging.Logger, interval_sec: float = 5.0) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._last_log_time = float("-inf")
        self._counter = 0

    def warning(self, message: str, *args) -> None:
        self._counter += 1
        now = time.monotonic()

        if now - self._last_log_time >= self._interval:
            self._logger.warning("[x%d] " + message, self._counter, *args)
            self._last_log_time = now
            self._counter = 0
