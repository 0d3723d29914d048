"""
Centralized logging configuration.

Modules log through ``logging.getLogger(__name__)``; handlers live on the
``reprodoc`` package logger only, so records are emitted once.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from .settings import Settings, get_settings

ROOT_LOGGER = "reprodoc"


def setup_logger(settings: Settings | None = None, *, level: str | None = None) -> logging.Logger:
    """
    Configure and return the package logger.

    Usage:
        from reprodoc.config.logging_config import setup_logger
        setup_logger(level="DEBUG")

    Calling it again only adjusts the level.
    """
    settings = settings or get_settings()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(settings.log_format))
    logger.addHandler(console)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.log_max_size_mb * 1024 * 1024,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(settings.log_format))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
