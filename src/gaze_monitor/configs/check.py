import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..analysis import DEFAULT_MAX_DISTANCE, DEFAULT_MIN_DURATION_MS
from ..errors import ConfigError
from ..models import CheckRegion

logger = logging.getLogger(__name__)


class FixationSettings(BaseModel):
    """Fixation detector parameters. On disk: `{"max distance": 50, "min msec": 100}`."""
    model_config = ConfigDict(populate_by_name=True)

    max_distance: float = Field(DEFAULT_MAX_DISTANCE, alias="max distance", gt=0)
    min_duration_ms: float = Field(DEFAULT_MIN_DURATION_MS, alias="min msec", ge=0)


class TargetRegion(BaseModel):
    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    name: str

    def to_region(self) -> CheckRegion:
        return CheckRegion(self.x, self.y, self.width, self.height, self.name)


class CheckConfig(BaseModel):
    """Contents of the check configuration file: fixation parameters and named target regions."""
    fixation: FixationSettings = Field(default_factory=FixationSettings)
    targets: list[TargetRegion] = Field(default_factory=list)

    @field_validator("fixation", mode="before")
    @classmethod
    def _null_fixation(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("targets", mode="before")
    @classmethod
    def _drop_null_targets(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [t for t in v if t is not None]
        return v

    @property
    def regions(self) -> list[CheckRegion]:
        return [t.to_region() for t in self.targets]


def load_check_config(path: Path) -> CheckConfig:
    """
    Reads the check configuration JSON file.

    A missing file yields the defaults with no targets.

    Raises:
        ConfigError: the file exists but is not valid JSON or does not
            match the expected structure.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Check config '%s' does not exist, using defaults.", path)
        return CheckConfig()

    try:
        config = CheckConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid check config '{path}': {e}") from e

    logger.info(
        f"Check config loaded: {len(config.targets)} targets, "
        f"max distance {config.fixation.max_distance:g}px, min {config.fixation.min_duration_ms:g}ms."
    )
    return config
