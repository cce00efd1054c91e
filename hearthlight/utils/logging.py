"""Logging setup shared by the API, the CLI and the tests."""

import logging
import os
import sys

from pydantic import BaseModel, Field

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "langgraph")


class LogConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_loggers: tuple[str, ...] = NOISY_LOGGERS


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger and cap chatty third-party loggers at WARNING."""
    config = config or LogConfig()

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return a module logger.

    Args:
        name: Module name (typically __name__)
        level: Explicit level; defaults to the LOG_LEVEL environment variable

    Returns:
        Logger with its level applied
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger
