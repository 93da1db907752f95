"""
Configuration and logging setup.

Settings come from environment variables, optionally loaded from a `.env` file.
"""

import os
import sys
import logging
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ConfigDict, ValidationError, field_validator

from .errors import ConfigurationError

DEFAULT_VIDEO_MODEL = "veo-2.0-generate-001"
DEFAULT_IMAGE_MODEL = "imagen-3.0-generate-002"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Environment variable -> Settings field
ENV_FIELDS = {
    "GOOGLE_API_KEY": "google_api_key",
    "STORAGE_DIR": "storage_dir",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "VEO_MODEL": "video_model",
    "IMAGEN_MODEL": "image_model",
    "POLL_INTERVAL_SECONDS": "poll_interval",
    "MAX_POLL_SECONDS": "max_poll_seconds",
    "DOWNLOAD_TIMEOUT_SECONDS": "download_timeout",
}


class Settings(BaseModel):
    """Validated process configuration."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    google_api_key: str = Field(..., min_length=1)
    storage_dir: Path = Field(default=Path("./generated-videos"))
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    video_model: str = Field(default=DEFAULT_VIDEO_MODEL, min_length=1)
    image_model: str = Field(default=DEFAULT_IMAGE_MODEL, min_length=1)
    poll_interval: float = Field(default=5.0, ge=0)
    # 0 disables the bound
    max_poll_seconds: float = Field(default=600.0, ge=0)
    download_timeout: float = Field(default=120.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level == "VERBOSE":
            return "DEBUG"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{value}'")
        return level

    @property
    def video_dir(self) -> Path:
        return self.storage_dir.resolve()

    @property
    def image_dir(self) -> Path:
        return self.storage_dir.resolve() / "images"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment.

    When ``environ`` is omitted, a `.env` file in the working directory is
    loaded first and ``os.environ`` is used.

    Raises:
        ConfigurationError: a required variable is missing or a value is invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values = {
        field: environ[var]
        for var, field in ENV_FIELDS.items()
        if environ.get(var) not in (None, "")
    }
    if "google_api_key" not in values:
        raise ConfigurationError("GOOGLE_API_KEY environment variable is required")

    try:
        return Settings(**values)
    except ValidationError as e:
        fields = {field: var for var, field in ENV_FIELDS.items()}
        problems = ", ".join(
            f"{fields.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid environment variables: {problems}") from e


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout belongs to the stdio transport."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
