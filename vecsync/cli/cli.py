# vecsync/cli/cli.py
"""
Main vecsync CLI.

Commands:
    vecsync index PATH      Incrementally index a codebase
    vecsync reindex PATH    Full rebuild with an atomic alias swap
    vecsync baseline PATH   Write a snapshot without indexing
    vecsync status PATH     Snapshot, collection and pending changes
    vecsync clear PATH      Drop the collection and the snapshot
    vecsync search PATH Q   Query the index
    vecsync plugins         List discovered plugins
"""

from __future__ import annotations

import typer

from vecsync import __version__
from vecsync.cli.commands import baseline, clear, index, reindex, search, status
from vecsync.cli.ui import ui

app = typer.Typer(
    help="vecsync: incremental code indexing into vector stores",
    no_args_is_help=True,
    add_completion=False,
)

app.command("index")(index.command)
app.command("reindex")(reindex.command)
app.command("baseline")(baseline.command)
app.command("status")(status.command)
app.command("clear")(clear.command)
app.command("search")(search.command)


@app.command("plugins")
def plugins() -> None:
    """List discovered embedding and vector store plugins."""
    from vecsync.llm.embedding.registry import available_embedding_plugins
    from vecsync.vector_db.registry import available_vector_db_plugins

    ui.header("Plugins")
    for title, names in (
        ("Embedding", available_embedding_plugins()),
        ("Vector DB", available_vector_db_plugins()),
    ):
        ui.info(f"{title}:")
        for name in names:
            ui.status(name, True)


@app.command("version")
def version() -> None:
    """Print the vecsync version."""
    typer.echo(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
