"""Console and rotating-file logging for the service and the CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from .config import AppConfig

LOG_FILENAME = "bitratelab.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# urllib3 logs every pooled connection at DEBUG
QUIET_LOGGERS = ("urllib3",)


def _build_handlers(log_path: Path) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: List[logging.Handler] = [
        RotatingFileHandler(log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: AppConfig) -> None:
    """Replace the root handlers; an unknown level name falls back to INFO."""
    config.paths.logs_dir.mkdir(parents=True, exist_ok=True)
    level_name = config.logging.level.upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in _build_handlers(config.paths.logs_dir / LOG_FILENAME):
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if logging.getLevelName(level) != level_name:
        logging.getLogger(__name__).warning(
            "Unknown log level %r, using INFO", config.logging.level
        )
