"""Application logging: rotating log file plus optional stderr output."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "voicepaste"
LOG_LEVEL_ENV = "VOICEPASTE_LOG_LEVEL"
LOG_CONSOLE_ENV = "VOICEPASTE_LOG_CONSOLE"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_logger_instance: Optional[logging.Logger] = None


def get_log_dir() -> Path:
    from config import get_config_dir

    log_dir = get_config_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger under the ``voicepaste`` hierarchy, configuring it once."""
    global _logger_instance

    if _logger_instance is None:
        root_logger = logging.getLogger(ROOT_LOGGER)
        if not root_logger.handlers:
            level = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
            console = os.getenv(LOG_CONSOLE_ENV, "").lower() in ("1", "true", "yes")
            _install_handlers(root_logger, level, console)
        _logger_instance = root_logger

    if name == ROOT_LOGGER:
        return _logger_instance
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str = "INFO", console: bool = False) -> logging.Logger:
    """Reconfigure handlers from user settings (env variables still win)."""
    global _logger_instance

    level = os.getenv(LOG_LEVEL_ENV, level).upper()
    if os.getenv(LOG_CONSOLE_ENV):
        console = os.getenv(LOG_CONSOLE_ENV, "").lower() in ("1", "true", "yes")

    root_logger = logging.getLogger(ROOT_LOGGER)
    _close_handlers(root_logger)
    _install_handlers(root_logger, level, console)
    _logger_instance = root_logger
    return root_logger


def shutdown_logging() -> None:
    """Close all handlers so the log file is released."""
    global _logger_instance
    _close_handlers(logging.getLogger(ROOT_LOGGER))
    _logger_instance = None


def _install_handlers(root_logger: logging.Logger, level: str, console: bool) -> None:
    numeric = logging.getLevelName(level)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    root_logger.setLevel(numeric)
    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(
        get_log_dir() / "app.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.propagate = False


def _close_handlers(root_logger: logging.Logger) -> None:
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
