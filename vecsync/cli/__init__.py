"""
vecsync command line.

Provides the top-level `vecsync` Typer app.
"""

from vecsync.cli.cli import app

__all__ = ["app"]
