"""Logging helpers: get_logger plus per-stage tags."""

from .logger import configure_logging, get_logger, is_configured

__all__ = ["get_logger", "configure_logging", "is_configured"]
