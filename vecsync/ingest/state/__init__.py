"""
Snapshot state for incremental indexing.

This package handles the per-root snapshot file that tracks:
- Which files were indexed successfully
- Their content hashes, sizes and mtimes for change detection
- The ignore/include rules the walk used
"""

from .manager import SnapshotStore, root_key
from .schema import SNAPSHOT_FORMAT_VERSION, FileFingerprint, Snapshot

__all__ = [
    "SnapshotStore",
    "root_key",
    "Snapshot",
    "FileFingerprint",
    "SNAPSHOT_FORMAT_VERSION",
]
