# vecsync/cli/commands/clear.py
"""Drop the index and snapshot for a root directory."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import ui
from vecsync.cli.utils import cli_errors, config_option, load_context, verbose_option


def command(
    path: Path = typer.Argument(..., help="Root directory."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    collection: Optional[str] = typer.Option(None, "--collection", help="Collection or alias to drop."),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Delete the collection and snapshot so the next index starts from scratch."""
    ctx = load_context(config, verbose)

    with cli_errors():
        orchestrator = ctx.orchestrator
        name = collection or orchestrator.collection_name(path)
        if not yes and not typer.confirm(f"Drop '{name}' and the snapshot for {path.resolve()}?"):
            ui.info("Aborted")
            raise typer.Exit(0)

        removed = orchestrator.clear_index(path, collection=collection)

    if removed:
        ui.success(f"Cleared index '{name}'")
    else:
        ui.info("Nothing to clear")
