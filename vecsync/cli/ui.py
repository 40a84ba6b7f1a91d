# vecsync/cli/ui.py
"""
Rich output helpers for the CLI.

Usage:
    from vecsync.cli.ui import ui

    ui.header("vecsync index", str(root))
    with ui.index_progress("Indexing") as on_progress:
        orchestrator.index_codebase(root, on_progress=on_progress)
    ui.success("Done")
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Iterator, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from vecsync.ingest.diff.executor import IndexStats
from vecsync.ingest.progress import ProgressCallback, ProgressEvent

# Detect if we can use Unicode safely (not Windows legacy console)
CAN_USE_UNICODE = sys.platform != "win32" or (sys.stdout.encoding or "").lower() in ("utf-8", "utf8")

CHECK = "✓" if CAN_USE_UNICODE else "[OK]"
CROSS = "✗" if CAN_USE_UNICODE else "[X]"
WARN = "⚠" if CAN_USE_UNICODE else "[!]"

console = Console()


class UI:
    """Styled output for CLI commands."""

    def header(self, title: str, subtitle: str = "") -> None:
        content = f"[bold]{title}[/bold]"
        if subtitle:
            content += f"\n[dim]{subtitle}[/dim]"
        console.print(Panel.fit(content, border_style="blue"))

    def success(self, msg: str) -> None:
        console.print(f"[green]{CHECK}[/green] {msg}")

    def error(self, msg: str) -> None:
        console.print(f"[red]{CROSS}[/red] {msg}")

    def warning(self, msg: str, detail: str = "") -> None:
        detail_str = f" [dim]({detail})[/dim]" if detail else ""
        console.print(f"[yellow]{WARN}[/yellow] {msg}{detail_str}")

    def info(self, msg: str) -> None:
        console.print(f"[dim]{msg}[/dim]")

    def status(self, name: str, ok: bool, detail: str = "") -> None:
        """Print a status line (check/x with name and optional detail)."""
        icon, color = (CHECK, "green") if ok else (CROSS, "red")
        detail_str = f" [dim]({detail})[/dim]" if detail else ""
        console.print(f"  [{color}]{icon}[/{color}] {name}{detail_str}")

    def stats(self, stats: IndexStats, title: str = "Indexing summary") -> None:
        table = Table(title=title, show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Files processed", str(stats.files_processed))
        table.add_row("Files failed", str(stats.files_failed))
        table.add_row("Files deleted", str(stats.files_deleted))
        table.add_row("Chunks created", str(stats.chunks_created))
        table.add_row("Chunks embedded", str(stats.chunks_embedded))
        table.add_row("Chunks reused", str(stats.chunks_reused))
        table.add_row("Chunks failed", str(stats.chunks_failed))
        table.add_row("Duration", f"{stats.duration_ms} ms")
        console.print(table)
        for detail in stats.error_details[:10]:
            self.warning(detail)
        if len(stats.error_details) > 10:
            self.info(f"... and {len(stats.error_details) - 10} more")

    def results(self, rows: Sequence[tuple[str, str, float, str]]) -> None:
        """Render search hits as (location, language, score, preview) rows."""
        table = Table(show_lines=False)
        table.add_column("Location", style="cyan", no_wrap=True)
        table.add_column("Lang")
        table.add_column("Score", justify="right")
        table.add_column("Preview")
        for location, language, score, preview in rows:
            table.add_row(location, language, f"{score:.4f}", preview)
        console.print(table)

    @contextmanager
    def index_progress(self, description: str = "Indexing") -> Iterator[ProgressCallback]:
        """
        Progress bar driven by ProgressEvents.

        Yields a callback to hand to index_codebase / reindex.
        """
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        task = progress.add_task(description, total=100)

        def on_progress(event: ProgressEvent) -> None:
            label = f"{description} [dim]{event.phase.value}[/dim]"
            progress.update(task, completed=event.percentage, description=label)

        with progress:
            yield on_progress


ui = UI()


def preview(text: str, width: int = 80) -> str:
    """First non-blank line of text, shortened to width."""
    line = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    if len(line) > width:
        return line[: width - 3] + "..."
    return line


__all__ = ["UI", "ui", "console", "preview", "CHECK", "CROSS", "WARN"]
