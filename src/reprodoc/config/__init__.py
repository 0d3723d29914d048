"""Configuration package."""

from .logging_config import setup_logger
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "setup_logger"]
