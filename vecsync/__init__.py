"""
vecsync: incremental code indexing into vector stores.

Walks a source tree, detects changed files by content hash, chunks them
along syntax boundaries, embeds the chunks and keeps a vector collection
in sync with the tree.

Usage:
    from vecsync.cli.context import CLIContext

    ctx = CLIContext.load()
    stats = ctx.orchestrator.index_codebase("./repo")
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
