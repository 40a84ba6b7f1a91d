# vecsync/ingest/diff/synchronizer.py
"""
FileSynchronizer: scan + diff + snapshot commit for one root directory.

The synchronizer never touches the vector store. The orchestrator calls
commit() only after the store writes for a diff are durable, so a crash in
between makes the next run redo the same (idempotent) work instead of
believing a file is indexed when it is not.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from vecsync.config.schema import ScanConfig
from vecsync.ingest.state.manager import SnapshotStore
from vecsync.ingest.state.schema import Snapshot
from vecsync.logging import get_logger
from vecsync.logging.tags import STATE

from .differ import Differ, FileDiff
from .scanner import FileScanner, read_ignore_files, resolve_root

logger = get_logger(__name__)


class FileSynchronizer:
    """
    Produces FileDiffs against the last Snapshot and persists new Snapshots.

    Usage:
        sync = FileSynchronizer(SnapshotStore(state_dir), config.scan)
        diff = sync.diff(root, previous=sync.store.load(root))
        ...  # apply the diff to the store
        sync.commit(root, diff, previous)
    """

    def __init__(self, store: SnapshotStore, scan_config: Optional[ScanConfig] = None) -> None:
        self._store = store
        self._config = scan_config or ScanConfig()
        self._differ = Differ()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def ignore_patterns_for(self, root: Path, base: Optional[Iterable[str]] = None) -> List[str]:
        """Configured patterns followed by those from the root's ignore files."""
        patterns = list(self._config.ignore_patterns if base is None else base)
        if self._config.read_ignore_files:
            for pattern in read_ignore_files(root):
                if pattern not in patterns:
                    patterns.append(pattern)
        return patterns

    def filters_for(self, root: Path, previous: Optional[Snapshot] = None) -> Tuple[List[str], List[str]]:
        """
        (ignore_patterns, include_extensions) for a walk of root.

        A previous snapshot's filters win over the configured ones, so a
        root is always diffed with the filters its snapshot was built with.
        Patterns added to the root's ignore files since then still apply.
        """
        if previous is not None:
            return self.ignore_patterns_for(root, previous.ignore_patterns), sorted(previous.include_extensions)
        return self.ignore_patterns_for(root), sorted(self._config.include_extensions)

    def _scanner(self, ignore_patterns: Iterable[str], include_extensions: Iterable[str]) -> FileScanner:
        return FileScanner(
            ignore_patterns,
            include_extensions,
            workers=self._config.workers,
            verify_hashes=self._config.verify_hashes,
        )

    def initialize(
        self,
        root_dir: str | Path,
        ignore_patterns: Optional[Iterable[str]] = None,
        include_extensions: Optional[Iterable[str]] = None,
    ) -> Snapshot:
        """
        Cold start: fingerprint every matching file and persist a Snapshot.

        Also used to write a baseline snapshot without indexing anything.
        Filters not given fall back to the configured ones.

        Raises:
            InvalidRootError: If the root is missing or unreadable.
        """
        root = resolve_root(root_dir)
        patterns = self.ignore_patterns_for(root, ignore_patterns)
        extensions = sorted(self._config.include_extensions if include_extensions is None else include_extensions)
        scan = self._scanner(patterns, extensions).scan(root)

        snapshot = Snapshot.empty(str(root), ignore_patterns=patterns, include_extensions=extensions)
        snapshot.file_hashes.update(scan.files)
        self._store.save(snapshot)
        logger.info(f"{STATE} Initialized snapshot for {root} with {len(snapshot.file_hashes)} files")
        return snapshot

    def diff(self, root_dir: str | Path, previous: Optional[Snapshot] = None, force: bool = False) -> FileDiff:
        """
        Re-walk the root and classify every path against previous.

        The walk applies previous's filters. Files whose size and mtime match
        previous are not re-read. With force=True nothing is reused and the
        configured filters replace the stored ones.
        """
        root = resolve_root(root_dir)
        patterns, extensions = self.filters_for(root, None if force else previous)
        scan = self._scanner(patterns, extensions).scan(root, previous=None if force else previous)
        diff = self._differ.compute_diff(scan, previous=previous, force=force)
        diff.ignore_patterns = patterns
        diff.include_extensions = extensions
        return diff

    def commit(self, root_dir: str | Path, diff: FileDiff, previous: Optional[Snapshot] = None) -> Snapshot:
        """
        Merge a fully applied diff into the snapshot and persist it.

        Deleted paths are dropped, added and modified fingerprints are
        written, unchanged ones are refreshed. Paths the diff does not
        account for (unreadable this run, or removed from the diff after a
        failure) keep their previous fingerprint. The snapshot records the
        filters the diff was computed with.
        """
        root = resolve_root(root_dir)
        base = previous if previous is not None else Snapshot.empty(str(root))
        file_hashes = dict(base.file_hashes)

        for path in diff.deleted:
            file_hashes.pop(path, None)
        for path in diff.added | diff.modified | diff.unchanged:
            fingerprint = diff.fingerprints.get(path)
            if fingerprint is not None:
                file_hashes[path] = fingerprint

        patterns, extensions = self.filters_for(root, previous)
        snapshot = Snapshot(
            root_dir=str(root),
            ignore_patterns=patterns if diff.ignore_patterns is None else diff.ignore_patterns,
            include_extensions=extensions if diff.include_extensions is None else diff.include_extensions,
            file_hashes=file_hashes,
            updated_at=datetime.now(timezone.utc),
        )
        self._store.save(snapshot)
        logger.info(
            f"{STATE} Committed snapshot for {root}: {len(file_hashes)} files "
            f"(+{len(diff.added)} ~{len(diff.modified)} -{len(diff.deleted)})"
        )
        return snapshot


__all__ = ["FileSynchronizer"]
