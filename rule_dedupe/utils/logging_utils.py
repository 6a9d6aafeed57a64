"""Logging utilities for the rule dedupe engine."""

import logging
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    fmt: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging for the engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        fmt: Log record format
        log_file: Optional file to mirror log output into

    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt,
        handlers=handlers,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance

    """
    return logging.getLogger(name)
