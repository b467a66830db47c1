"""
Logging configuration and utilities.

Console output goes through Rich; a rotating file handler is added when a
log file is configured. Conversion steps log through module loggers obtained
with get_logger.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler

from ..config import LoggingConfig

PACKAGE_LOGGER = "wdi_conversion"

# Chatty dependencies kept at WARNING
_QUIET_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "sqlalchemy.pool")


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Set up logging configuration based on provided settings.

    Args:
        config: Logging configuration object (defaults to LoggingConfig())

    Returns:
        The package logger
    """
    config = config or LoggingConfig()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    level = getattr(logging, config.level.upper())
    root_logger.setLevel(level)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=config.level == "DEBUG",
        show_time=True,
        rich_tracebacks=True
    )
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if config.file_path:
        file_path = Path(config.file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=file_path,
            maxBytes=_parse_size(config.rotation_size),
            backupCount=config.retention_days
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(config.format))
        root_logger.addHandler(file_handler)

    quiet_loggers(_QUIET_LOGGERS)

    return logging.getLogger(PACKAGE_LOGGER)


def quiet_loggers(names: Iterable[str], level: int = logging.WARNING) -> None:
    """Raise the threshold of third-party loggers."""
    for name in names:
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def _parse_size(size_str: str) -> int:
    """
    Parse size string (e.g., '10MB', '1GB') to bytes.

    Args:
        size_str: Size string with unit

    Returns:
        Size in bytes
    """
    size_str = size_str.strip().upper()

    if size_str.endswith('KB'):
        return int(size_str[:-2]) * 1024
    elif size_str.endswith('MB'):
        return int(size_str[:-2]) * 1024 * 1024
    elif size_str.endswith('GB'):
        return int(size_str[:-2]) * 1024 * 1024 * 1024
    elif size_str.endswith('B'):
        return int(size_str[:-1])
    else:
        return int(size_str)
