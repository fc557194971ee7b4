"""Logging utilities."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "ttc"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up and configure a logger.

    Args:
        name: Logger name.
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file path for logging.
        console: Whether to log to console.
        format_string: Custom format string.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    logger.handlers = []

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
    )

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logger_from_config(
    config: Dict[str, Any],
    name: str = DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """
    Configure a logger from the ``logging`` section of a config dict.

    Args:
        config: Full configuration dictionary.
        name: Logger name.

    Returns:
        Configured logger instance.
    """
    section = config.get("logging") or {}
    return setup_logger(
        name=name,
        level=section.get("level", "INFO"),
        log_file=section.get("log_file"),
        console=section.get("console", True),
    )


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get an existing logger or create a basic one.

    Child loggers (``ttc.<something>``) defer to the root ``ttc`` logger's
    handlers instead of getting their own.

    Args:
        name: Logger name.

    Returns:
        Logger instance.
    """
    logger = logging.getLogger(name)

    if name.startswith(DEFAULT_LOGGER_NAME + "."):
        return logger

    if not logger.handlers:
        logger = setup_logger(name)

    return logger


class LoggerMixin:
    """Mixin class to add logging to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get class-specific logger (``ttc.<ClassName>``)."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(f"{DEFAULT_LOGGER_NAME}.{self.__class__.__name__}")
        return self._logger

