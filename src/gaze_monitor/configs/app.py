import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, PositiveFloat, PositiveInt, model_validator, Field

from .utils import LoggingConfig

logger = logging.getLogger(__name__)

class TrackerSettings(BaseModel):
    """Where the tracker server listens and how much history to keep."""
    host: str = "localhost"
    port: PositiveInt = 6555
    retention_s: PositiveFloat = Field(30.0, description="Seconds of frames kept in the buffer.")

class HTTPSettings(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: PositiveInt = 8888
    static_dir: Path = Path("./static")
    ssl_cert: Optional[Path] = None
    ssl_key: Optional[Path] = None

    @model_validator(mode='after')
    def validate_ssl_pair(self) -> "HTTPSettings":
        if (self.ssl_cert is None) != (self.ssl_key is None):
            raise ValueError('ssl_cert and ssl_key must be set together.')
        return self

class HeatmapSettings(BaseModel):
    brush_path: Optional[Path] = Field(None, description="PNG brush. A generated radial brush is used when unset.")
    brush_size: PositiveInt = 100

class LogSinkSettings(BaseModel):
    enabled: bool = True
    path: Path = Path("log.json")
    drop_when_full: bool = True
    queue_size: PositiveInt = 60 * 60 # One minute of data at 60 Hz

class ReplaySettings(BaseModel):
    width: PositiveInt = 1920
    height: PositiveInt = 1080
    cutoffs_s: list[int] = Field(default=[-1, 5, 10, 15], description="Negative means the whole page session.")
    image_config_path: Path = Path("imageConfig.json")

class AppSettings(BaseSettings):
    """
    Main application settings, loaded from environment variables and defaults.
    """
    # Sources
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    check_config_path: Path = Field(Path("config.json"), description="Fixation parameters and target regions.")
    default_window_ms: PositiveInt = 10_000

    # Outputs
    http: HTTPSettings = Field(default_factory=HTTPSettings)
    heatmap: HeatmapSettings = Field(default_factory=HeatmapSettings)
    log_sink: LogSinkSettings = Field(default_factory=LogSinkSettings)
    replay: ReplaySettings = Field(default_factory=ReplaySettings)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="GAZE__",
        env_file=".env",
        env_nested_delimiter='__',
        case_sensitive=False
    )
