"""Logging setup shared by the API, the chat loop and the outbound clients."""

import logging
import os
import sys

from pydantic import BaseModel, Field

DEFAULT_LEVEL = "INFO"


def _env_level() -> str:
    return os.getenv("SILVAPLAN_LOG_LEVEL") or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL


def _to_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    # getLevelName returns "Level X" for names it does not know
    return level if isinstance(level, int) else logging.INFO


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default_factory=_env_level)
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # Vendor, Nominatim and Open-Meteo calls all log every request through httpx
    quiet_loggers: tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")
    quiet_level: str = "WARNING"


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger on stdout and quiet chatty libraries."""
    config = config or LogConfig()

    logging.basicConfig(
        level=_to_level(config.level),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(_to_level(config.quiet_level))


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a module logger.

    Args:
        name: Module name (typically __name__)
        level: Optional explicit level, otherwise SILVAPLAN_LOG_LEVEL, LOG_LEVEL or INFO
    """
    logger = logging.getLogger(name)
    logger.setLevel(_to_level(level or _env_level()))
    return logger
