# vecsync/logging/logger.py
"""
Logger factory for vecsync.

All modules obtain loggers through get_logger(__name__) so they share the
"vecsync" hierarchy and a single handler configuration.
"""

from __future__ import annotations

import logging
import sys

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "vecsync"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the vecsync hierarchy."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str | int = "INFO", *, rich: bool = False) -> logging.Logger:
    """
    Install a single handler on the vecsync root logger.

    Args:
        level: Log level name or number.
        rich: Use Rich's handler (CLI) instead of a plain stderr stream.

    Calling this again replaces the previous handler, so the CLI can switch
    levels after loading the config.
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if rich:
        handler: logging.Handler = RichHandler(
            rich_tracebacks=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False
    _configured = True
    return root


def is_configured() -> bool:
    return _configured
