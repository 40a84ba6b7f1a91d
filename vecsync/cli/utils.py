# vecsync/cli/utils.py
"""
Shared CLI utilities.

Common functions used across multiple CLI commands.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from vecsync.cli.context import CLIContext
from vecsync.cli.ui import ui
from vecsync.exceptions import (
    ConfigError,
    IndexCancelledError,
    IndexRunError,
    InvalidRootError,
    ProviderError,
    RunInProgressError,
    VecSyncError,
)
from vecsync.logging import get_logger

logger = get_logger(__name__)

# Exit codes
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_BUSY = 3
EXIT_CANCELLED = 130


def config_option() -> Optional[Path]:
    return typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file merged over the default configuration.",
        envvar="VECSYNC_CONFIG",
    )


def verbose_option() -> bool:
    return typer.Option(False, "--verbose", "-v", help="Enable debug logging.")


def load_context(config: Optional[Path], verbose: bool = False) -> CLIContext:
    """Load the CLI context or exit with a readable error."""
    try:
        return CLIContext.load(config, verbose=verbose)
    except ConfigError as e:
        ui.error(str(e))
        raise typer.Exit(EXIT_USAGE)


@contextmanager
def cli_errors() -> Iterator[None]:
    """
    Turn vecsync errors into a message and an exit code.

    IndexRunError also prints the partial stats of the aborted run.
    """
    try:
        yield
    except RunInProgressError as e:
        ui.error(str(e))
        raise typer.Exit(EXIT_BUSY)
    except (InvalidRootError, ConfigError) as e:
        ui.error(str(e))
        raise typer.Exit(EXIT_USAGE)
    except IndexCancelledError as e:
        ui.warning("Indexing cancelled; the snapshot was not updated")
        ui.stats(e.stats, title="Partial run")
        raise typer.Exit(EXIT_CANCELLED)
    except IndexRunError as e:
        ui.error(str(e))
        ui.stats(e.stats, title="Partial run")
        if e.retryable:
            ui.info("The failure looks transient; re-running is safe.")
        raise typer.Exit(EXIT_FAILED)
    except ProviderError as e:
        ui.error(f"{e.kind.value}: {e}")
        raise typer.Exit(EXIT_FAILED)
    except VecSyncError as e:
        ui.error(str(e))
        raise typer.Exit(EXIT_FAILED)


__all__ = [
    "EXIT_FAILED",
    "EXIT_USAGE",
    "EXIT_BUSY",
    "EXIT_CANCELLED",
    "config_option",
    "verbose_option",
    "load_context",
    "cli_errors",
]
