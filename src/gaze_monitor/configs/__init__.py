from .app import (
    AppSettings,
    HeatmapSettings,
    HTTPSettings,
    LogSinkSettings,
    ReplaySettings,
    TrackerSettings,
)
from .check import CheckConfig, FixationSettings, TargetRegion, load_check_config
from .utils import LoggingConfig

__all__ = [
    "AppSettings",
    "CheckConfig",
    "FixationSettings",
    "HTTPSettings",
    "HeatmapSettings",
    "LogSinkSettings",
    "LoggingConfig",
    "ReplaySettings",
    "TargetRegion",
    "TrackerSettings",
    "load_check_config",
]
