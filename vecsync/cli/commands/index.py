# vecsync/cli/commands/index.py
"""
Incremental indexing command.

Usage:
    vecsync index ./repo            # Only changed files are re-embedded
    vecsync index ./repo --force    # Re-embed everything, keep the collection
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import ui
from vecsync.cli.utils import cli_errors, config_option, load_context, verbose_option
from vecsync.logging import get_logger
from vecsync.logging.tags import CLI

logger = get_logger(__name__)


def command(
    path: Path = typer.Argument(..., help="Root directory to index."),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore the snapshot and re-embed every file."),
    collection: Optional[str] = typer.Option(
        None, "--collection", help="Target collection or alias (default: derived from the path)."
    ),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """
    Index a codebase incrementally.

    Files whose content hash matches the last snapshot are skipped; deleted
    files have their chunks removed from the store.
    """
    ctx = load_context(config, verbose)

    with cli_errors():
        orchestrator = ctx.orchestrator
        name = collection or orchestrator.collection_name(path)
        ui.header("vecsync index", f"{path.resolve()} -> {name}")
        ui.info(ctx.display())

        with ui.index_progress("Indexing") as on_progress:
            stats = orchestrator.index_codebase(path, on_progress, collection=collection, force=force)

    logger.debug(f"{CLI} index finished: {stats}")
    ui.stats(stats)
    if stats.files_failed:
        ui.warning(f"{stats.files_failed} files failed; they will be retried on the next run")
    else:
        ui.success("Index is up to date")
