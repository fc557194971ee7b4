"""Utility modules."""

from .config_loader import ConfigLoader, load_config, get_nested
from .logger import setup_logger, setup_logger_from_config, get_logger, LoggerMixin

__all__ = [
    "ConfigLoader",
    "load_config",
    "get_nested",
    "setup_logger",
    "setup_logger_from_config",
    "get_logger",
    "LoggerMixin",
]
