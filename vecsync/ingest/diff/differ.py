# vecsync/ingest/diff/differ.py
"""
Diff computation for incremental indexing.

Computes the change set by comparing:
1. Fingerprints scanned from disk
2. The last committed Snapshot (authoritative source for skip decisions)

Key design decision:
- The snapshot is the single source of truth
- If the snapshot has the path with the same hash → unchanged
- If the snapshot is missing → every file is added (safe, idempotent upserts)

This module ONLY computes the diff - it does NOT act on it.
Execution is handled by the executor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set

from vecsync.ingest.state.schema import FileFingerprint, Snapshot
from vecsync.logging import get_logger
from vecsync.logging.tags import DIFF

from .scanner import ScanResult

logger = get_logger(__name__)


@dataclass
class FileDiff:
    """
    Classified change set between the tree on disk and the last snapshot.

    added, modified, deleted and unchanged are disjoint. Unreadable files
    are reported in errors and appear in none of them.
    """

    added: Set[str] = field(default_factory=set)
    modified: Set[str] = field(default_factory=set)
    deleted: Set[str] = field(default_factory=set)
    unchanged: Set[str] = field(default_factory=set)
    fingerprints: Dict[str, FileFingerprint] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    # Filters the scan ran with; commit() persists them
    ignore_patterns: Optional[List[str]] = None
    include_extensions: Optional[List[str]] = None

    @property
    def changed(self) -> Set[str]:
        """Paths that need chunking and embedding."""
        return self.added | self.modified

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    @property
    def all_paths(self) -> Set[str]:
        return self.added | self.modified | self.deleted | self.unchanged

    @property
    def summary(self) -> str:
        return (
            f"added={len(self.added)}, "
            f"modified={len(self.modified)}, "
            f"deleted={len(self.deleted)}, "
            f"unchanged={len(self.unchanged)}, "
            f"errors={len(self.errors)}"
        )

    def without(self, paths: Iterable[str]) -> "FileDiff":
        """Copy with the given paths dropped from added, modified and deleted."""
        drop = set(paths)
        if not drop:
            return self
        return replace(
            self,
            added=self.added - drop,
            modified=self.modified - drop,
            deleted=self.deleted - drop,
            unchanged=set(self.unchanged),
            fingerprints={p: fp for p, fp in self.fingerprints.items() if p not in drop},
            errors=dict(self.errors),
        )


class Differ:
    """
    Classifies scanned files against a snapshot.

    The diff algorithm:
    1. Scanned path absent from the snapshot → added
    2. Scanned path in the snapshot with a different hash → modified
    3. Scanned path in the snapshot with the same hash → unchanged
    4. Snapshot path neither scanned nor unreadable → deleted

    Usage:
        differ = Differ()
        diff = differ.compute_diff(scan_result, previous=snapshot)
    """

    def compute_diff(
        self,
        scan: ScanResult,
        previous: Optional[Snapshot] = None,
        force: bool = False,
    ) -> FileDiff:
        """
        Compute the diff.

        Args:
            scan: Result of walking the root.
            previous: Last committed snapshot, or None if nothing was indexed.
            force: Treat every scanned file as changed. Files the snapshot
                knows are reported as modified so their old chunks get cleaned up.
        """
        diff = FileDiff(
            fingerprints=dict(scan.files),
            errors={path: message for path, message in scan.errors},
        )
        known = previous.file_hashes if previous is not None else {}

        for path, fingerprint in scan.files.items():
            old = known.get(path)
            if old is None:
                diff.added.add(path)
            elif force or old.hash != fingerprint.hash:
                diff.modified.add(path)
            else:
                diff.unchanged.add(path)

        # Forced rebuilds still clean up files that disappeared
        if previous is not None:
            unreadable_dirs = tuple(p for p in diff.errors if p.endswith("/"))
            diff.deleted = {
                path
                for path in previous.paths - set(scan.files) - set(diff.errors)
                if not path.startswith(unreadable_dirs)
            }

        logger.info(f"{DIFF} Diff computed: {diff.summary}")
        return diff


def compute_diff(scan: ScanResult, previous: Optional[Snapshot] = None, force: bool = False) -> FileDiff:
    """Convenience function to compute a diff."""
    return Differ().compute_diff(scan, previous=previous, force=force)


__all__ = ["FileDiff", "Differ", "compute_diff"]
