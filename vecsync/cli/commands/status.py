# vecsync/cli/commands/status.py
"""
Index status for a root directory.

Shows the snapshot, the collection (following aliases) and what an
incremental run would do right now.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import ui
from vecsync.cli.utils import cli_errors, config_option, load_context, verbose_option


def command(
    path: Path = typer.Argument(..., help="Root directory."),
    collection: Optional[str] = typer.Option(None, "--collection", help="Collection or alias to inspect."),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Show snapshot, collection and pending changes for PATH."""
    ctx = load_context(config, verbose)

    with cli_errors():
        orchestrator = ctx.orchestrator
        sync = orchestrator.synchronizer
        name = collection or orchestrator.collection_name(path)
        physical = orchestrator.resolve_collection(name)

        ui.header("vecsync status", str(path.resolve()))
        snapshot = sync.store.load(path)
        if snapshot is None:
            ui.status("Snapshot", False, "never indexed")
        else:
            ui.status("Snapshot", True, f"{len(snapshot.file_hashes)} files, updated {snapshot.updated_at:%Y-%m-%d %H:%M:%S}")

        label = name if physical == name else f"{name} -> {physical}"
        if orchestrator.store.has_collection(physical):
            ui.status("Collection", True, f"{label}, {orchestrator.store.count(physical)} chunks")
        else:
            ui.status("Collection", False, f"{label} missing")

        diff = sync.diff(path, snapshot)

    if diff.has_changes:
        ui.warning(f"Pending changes: {diff.summary}")
    else:
        ui.success("No pending changes")
    for error_path, message in sorted(diff.errors.items()):
        ui.warning(error_path, message)
