"""
GuardFlow Logging Configuration

Configurable logging with debug mode support.
"""

import os
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

from guardflow.ui import mask_sensitive


# Check for debug mode
DEBUG_MODE = os.environ.get("GUARDFLOW_DEBUG", "").lower() in ("1", "true", "yes")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class RedactingFormatter(logging.Formatter):
    """Formatter that masks wallet addresses and auth tokens in log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return mask_sensitive(message)


def _level_from_env() -> int:
    if DEBUG_MODE:
        return logging.DEBUG
    name = os.environ.get("GUARDFLOW_LOG_LEVEL", "").upper()
    return LOG_LEVELS.get(name, logging.WARNING)


def setup_logging(
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
    quiet: bool = False
) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (default: DEBUG if GUARDFLOW_DEBUG, else
            GUARDFLOW_LOG_LEVEL, else WARNING)
        log_file: Optional path to log file
        quiet: If True, suppress console output

    Returns:
        Configured logger
    """
    if level is None:
        level = _level_from_env()

    logger = logging.getLogger("guardflow")
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)

        if DEBUG_MODE:
            console_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            console_format = "%(levelname)s %(message)s"

        console_handler.setFormatter(RedactingFormatter(console_format))
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
        file_handler.setFormatter(RedactingFormatter(file_format))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = "guardflow") -> logging.Logger:
    """Get a logger under the guardflow namespace.

    Unlike setup_logging this never attaches handlers, so library use stays
    silent until the host application configures logging.

    Args:
        name: Logger name (will be prefixed with 'guardflow.')

    Returns:
        Logger instance
    """
    if not name.startswith("guardflow"):
        name = f"guardflow.{name}"
    return logging.getLogger(name)


def get_log_path(base_dir: Path) -> Path:
    """Get the default log file path."""
    return base_dir / "logs" / f"guardflow-{datetime.now().strftime('%Y-%m-%d')}.log"


# Environment variable documentation
ENV_VARS = {
    "GUARDFLOW_DEBUG": {
        "description": "Enable debug mode with verbose logging",
        "values": ["1", "true", "yes"],
        "default": "false"
    },
    "GUARDFLOW_LOG_LEVEL": {
        "description": "Set logging level",
        "values": ["DEBUG", "INFO", "WARNING", "ERROR"],
        "default": "WARNING"
    },
    "GUARDFLOW_CONFIG": {
        "description": "Path to the guardflow.yaml configuration file",
        "default": "./guardflow.yaml"
    },
}
