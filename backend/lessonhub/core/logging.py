"""
Logging configuration for the application.
Sets up logging with file rotation and console output.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from lessonhub.core.config import settings
from lessonhub.core.exceptions import ConfigurationError

_configured = False


def setup_logging():
    """
    Configure application logging with both file and console handlers.
    Uses settings from config for log level, file path, and rotation.
    Safe to call more than once; handlers are only attached the first time.
    """
    global _configured
    root_logger = logging.getLogger()
    if _configured:
        return root_logger

    log_file_path = Path(settings.LOG_FILE)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    # "10 MB" -> 10 * 1024 * 1024
    rotation_parts = settings.LOG_ROTATION.split()
    if not rotation_parts or not rotation_parts[0].isdigit():
        raise ConfigurationError(
            f"Invalid LOG_ROTATION value: {settings.LOG_ROTATION!r}",
            details={"expected": "<megabytes> MB"},
        )
    rotation_bytes = int(rotation_parts[0]) * 1024 * 1024

    file_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_formatter = logging.Formatter(
        fmt="%(levelname)s:\t%(name)s - %(message)s"
    )

    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=rotation_bytes,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO if settings.is_production else logging.DEBUG)
    console_handler.setFormatter(console_formatter)

    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _configured = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
