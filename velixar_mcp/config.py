"""Configuration loaded from VELIXAR_* environment variables."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_API_URL = "https://api.velixarai.com"
DEFAULT_USER_ID = "mcp-user"
DEFAULT_RECALL_LIMIT = 10
REQUEST_TIMEOUT_SECONDS = 30.0

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class ConfigError(Exception):
    """Raised when the environment cannot produce usable settings."""


class Settings(BaseModel):
    """Runtime settings for the server."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    api_key: str = Field(..., min_length=1)
    api_url: str = DEFAULT_API_URL
    user_id: str = DEFAULT_USER_ID
    auto_recall: bool = True
    recall_limit: int = Field(default=DEFAULT_RECALL_LIMIT, ge=1)
    log_level: str = "INFO"
    audit_log: Optional[Path] = None

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment.

    Raises:
        ConfigError: If VELIXAR_API_KEY is missing or a value is invalid.
    """
    env = os.environ if environ is None else environ

    api_key = env.get("VELIXAR_API_KEY")
    if not api_key:
        raise ConfigError("VELIXAR_API_KEY environment variable required")

    values = {
        "api_key": api_key,
        "api_url": env.get("VELIXAR_API_URL") or DEFAULT_API_URL,
        "user_id": env.get("VELIXAR_USER_ID") or DEFAULT_USER_ID,
        # Only an explicit "false" turns recall off
        "auto_recall": env.get("VELIXAR_AUTO_RECALL") != "false",
        "recall_limit": env.get("VELIXAR_RECALL_LIMIT") or DEFAULT_RECALL_LIMIT,
        "log_level": env.get("VELIXAR_LOG_LEVEL") or "INFO",
        "audit_log": env.get("VELIXAR_AUDIT_LOG") or None,
    }

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Send package logs to stderr; stdout is reserved for the protocol stream."""
    logger = logging.getLogger("velixar_mcp")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
