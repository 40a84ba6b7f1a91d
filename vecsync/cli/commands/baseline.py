# vecsync/cli/commands/baseline.py
"""
Write a snapshot without indexing.

Use when the store already holds an up-to-date index (for example one
restored from a backup) so the next `vecsync index` only sees new changes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import ui
from vecsync.cli.utils import cli_errors, config_option, load_context, verbose_option


def command(
    path: Path = typer.Argument(..., help="Root directory to fingerprint."),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Fingerprint every file under PATH and save it as the current snapshot."""
    ctx = load_context(config, verbose)

    with cli_errors():
        snapshot = ctx.synchronizer.initialize(path)

    ui.success(f"Baseline written for {snapshot.root_dir} ({len(snapshot.file_hashes)} files)")
