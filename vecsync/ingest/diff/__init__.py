"""
Incremental (diff) indexing.

This package implements content-hash based incremental indexing:
- Only embed files that have changed
- Skip files that match the snapshot (authoritative source)
- Remove chunks of deleted files

Key components:
- FileScanner: Walks directories and fingerprints files
- Differ: Classifies paths against the snapshot
- FileSynchronizer: Scan + diff + snapshot commit
- IndexOrchestrator: Runs the full pipeline

Usage:
    from vecsync.ingest.diff import FileSynchronizer, IndexOrchestrator
    from vecsync.ingest.state import SnapshotStore

    orchestrator = IndexOrchestrator(
        store=store,
        embedder=embedder,
        chunker=chunker,
        synchronizer=FileSynchronizer(SnapshotStore(state_dir)),
    )
    stats = orchestrator.index_codebase("./repo")
    print(stats)  # "files processed 3, failed 0, deleted 0; ..."
"""

from .differ import Differ, FileDiff, compute_diff
from .executor import IndexOrchestrator, IndexRun, IndexStats, RunState
from .scanner import FileScanner, ScanResult, read_ignore_files, resolve_root
from .synchronizer import FileSynchronizer

__all__ = [
    # Scanner
    "FileScanner",
    "ScanResult",
    "read_ignore_files",
    "resolve_root",
    # Differ
    "Differ",
    "FileDiff",
    "compute_diff",
    # Synchronizer
    "FileSynchronizer",
    # Executor
    "IndexOrchestrator",
    "IndexRun",
    "IndexStats",
    "RunState",
]
