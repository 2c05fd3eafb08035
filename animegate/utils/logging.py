"""
Logging configuration utilities for animegate.

Provides configurable logging with file rotation support.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from ..config import DEFAULT_LOG_FORMAT, GateConfig


def _configure_root(
    level_name: str,
    log_format: str,
    log_file: Optional[str],
    max_bytes: int,
    backup_count: int,
) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def setup_logging(config: Optional[GateConfig] = None) -> None:
    """
    Configure logging based on GateConfig settings.

    Args:
        config: GateConfig instance. If None, uses sensible defaults.

    Features:
        - Configurable log level (DEBUG, INFO, WARNING, ERROR)
        - Optional file logging with rotation
        - Custom log format
    """
    if config is None:
        config = GateConfig()
    _configure_root(
        config.log_level,
        config.log_format,
        config.log_file or None,
        config.log_max_bytes,
        config.log_backup_count,
    )


def setup_logging_from_dict(config_dict: dict) -> None:
    """
    Configure logging from the ``logging`` section of a config dictionary.

    Args:
        config_dict: Dictionary with logging configuration.
            - level: Log level (DEBUG, INFO, WARNING, ERROR)
            - file: Optional log file path
            - format: Log format string
            - max_bytes: Max file size before rotation
            - backup_count: Number of backup files to keep

    Example:
        setup_logging_from_dict({"level": "DEBUG", "file": "animegate.log"})
    """
    _configure_root(
        config_dict.get("level", "INFO"),
        config_dict.get("format", DEFAULT_LOG_FORMAT),
        config_dict.get("file"),
        config_dict.get("max_bytes", 10485760),
        config_dict.get("backup_count", 3),
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name (typically __name__)."""
    return logging.getLogger(name)
