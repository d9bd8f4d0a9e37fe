import logging
import sys

from pydantic import BaseModel, field_validator

class LoggingConfig(BaseModel):
    """Root logger setup, applied once by the command-line entry point."""
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)-8s] [%(name)s] %(message)s"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{v}'.")
        return level

    def apply(self) -> None:
        logging.basicConfig(level=self.level, format=self.format, stream=sys.stdout)
