# vecsync/cli/commands/__init__.py
"""CLI commands. Each module exposes a `command` function."""

from vecsync.cli.commands import baseline, clear, index, reindex, search, status

__all__ = ["baseline", "clear", "index", "reindex", "search", "status"]
