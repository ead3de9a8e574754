"""
Logging configuration module.

Contains logging-related Pydantic config models and the helper that
applies them:
- LoggingSettings: Log level, optional log file and rotation settings
- setup_logging: Configure the root logger from LoggingSettings
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

__all__ = ["LoggingSettings", "setup_logging"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path (stderr only when unset)",
    )
    max_size_mb: int = Field(
        default=10,
        description="Maximum log file size in MB",
    )
    backup_count: int = Field(
        default=5,
        description="Number of backup log files to keep",
    )

    @field_validator("max_size_mb", "backup_count")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate value is positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


def setup_logging(settings: LoggingSettings | None = None, verbose: bool = False) -> None:
    """
    Configure logging for a process embedding the prompt store.

    Args:
        settings: Logging settings (defaults used when None)
        verbose: If True, force DEBUG level logging
    """
    settings = settings or LoggingSettings()
    log_level = logging.DEBUG if verbose else getattr(logging, settings.level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
            )
        )

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
    )

    # Silence noisy stdlib loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
