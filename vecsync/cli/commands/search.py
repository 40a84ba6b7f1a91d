# vecsync/cli/commands/search.py
"""
Query an index.

Usage:
    vecsync search ./repo "retry with backoff"
    vecsync search ./repo "parse_config" --mode text --top-k 5
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from vecsync.cli.ui import preview, ui
from vecsync.cli.utils import EXIT_USAGE, cli_errors, config_option, load_context, verbose_option
from vecsync.vector_db.base import SearchMode, SearchOptions


def command(
    path: Path = typer.Argument(..., help="Indexed root directory."),
    query: str = typer.Argument(..., help="Search text."),
    mode: SearchMode = typer.Option(SearchMode.VECTOR, "--mode", "-m", help="vector, text or hybrid."),
    top_k: int = typer.Option(10, "--top-k", "-k", min=1, help="Number of results."),
    extension: Optional[str] = typer.Option(None, "--ext", "-e", help="Only chunks from files with this extension, e.g. .py"),
    collection: Optional[str] = typer.Option(None, "--collection", help="Collection or alias to search."),
    config: Optional[Path] = config_option(),
    verbose: bool = verbose_option(),
) -> None:
    """Search the chunks indexed for PATH."""
    ctx = load_context(config, verbose)

    with cli_errors():
        orchestrator = ctx.orchestrator
        name = orchestrator.resolve_collection(collection or orchestrator.collection_name(path))
        if not orchestrator.store.has_collection(name):
            ui.error(f"No index for {path.resolve()} (collection '{name}'). Run 'vecsync index' first.")
            raise typer.Exit(EXIT_USAGE)

        vector = [] if mode == SearchMode.TEXT else ctx.embedder.embed(query).vector
        options = SearchOptions(
            mode=mode,
            top_k=top_k,
            filter=_extension_filter(extension),
            query_text=query,
        )
        hits = orchestrator.store.search(name, vector, options)

    if not hits:
        ui.info("No results")
        return

    ui.results(
        [
            (
                f"{hit.document.relative_path}:{hit.document.start_line}-{hit.document.end_line}",
                str(hit.document.metadata.get("language", "")),
                hit.score,
                preview(hit.document.content),
            )
            for hit in hits
        ]
    )


def _extension_filter(extension: Optional[str]) -> Optional[dict]:
    if not extension:
        return None
    ext = extension.lower()
    return {"file_extension": ext if ext.startswith(".") else f".{ext}"}
