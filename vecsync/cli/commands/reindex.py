# vecsync/cli/commands/reindex.py
"""
Zero-downtime full reindex.

Builds a new collection, points the alias at it, then drops the old one.

Usage:
    vecsync reindex ./repo
    vecsync reindex ./repo --alias my_code
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import ui
from vecsync.cli.utils import cli_errors, config_option, load_context, verbose_option


def command(
    path: Path = typer.Argument(..., help="Root directory to reindex."),
    alias: Optional[str] = typer.Option(None, "--alias", help="Alias name (default: derived from the path)."),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Rebuild the index into a fresh collection and swap the alias atomically."""
    ctx = load_context(config, verbose)

    with cli_errors():
        coordinator = ctx.coordinator()
        ui.header("vecsync reindex", str(path.resolve()))

        name = coordinator.alias_for(path, alias)
        if coordinator.occupied_by_collection(name):
            ui.warning(
                f"'{name}' is a plain collection and will be replaced by an alias",
                "searches find no index between dropping it and creating the alias",
            )

        with ui.index_progress("Reindexing") as on_progress:
            result = coordinator.reindex(path, on_progress, alias=alias)

    ui.stats(result.stats)
    ui.success(f"Alias '{result.alias}' now points to '{result.collection}'")
    if result.previous_collection:
        ui.info(f"Previous collection '{result.previous_collection}' retired")
