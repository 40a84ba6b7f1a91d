# vecsync/ingest/state/manager.py
"""
Snapshot persistence.

One JSON file per indexed root under <state_dir>/snapshots/. Writes go to a
temporary file in the same directory, are fsynced, then renamed over the
target, so a reader sees either the previous snapshot or the new one and
never a torn write.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from vecsync.exceptions import SnapshotError
from vecsync.ingest.state.schema import SNAPSHOT_FORMAT_VERSION, Snapshot
from vecsync.logging import get_logger
from vecsync.logging.tags import STATE

logger = get_logger(__name__)


def root_key(root_dir: str | Path) -> str:
    """Stable short key for an absolute root path."""
    resolved = str(Path(root_dir).resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]


class SnapshotStore:
    """
    Loads, saves and deletes snapshots for root directories.

    Usage:
        store = SnapshotStore(Path("~/.vecsync").expanduser())
        snapshot = store.load("/path/to/repo")   # None if never indexed
        store.save(snapshot)
    """

    def __init__(self, state_dir: str | Path) -> None:
        self._dir = Path(state_dir).expanduser() / "snapshots"

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, root_dir: str | Path) -> Path:
        return self._dir / f"{root_key(root_dir)}.json"

    def exists(self, root_dir: str | Path) -> bool:
        return self.path_for(root_dir).is_file()

    def load(self, root_dir: str | Path) -> Optional[Snapshot]:
        """
        Load the snapshot for a root.

        Returns:
            The Snapshot, or None if none has been written yet.

        Raises:
            SnapshotError: If the file is unreadable, corrupt or has an
                unsupported format version.
        """
        path = self.path_for(root_dir)
        if not path.exists():
            return None

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

        version = raw.get("format_version") if isinstance(raw, dict) else None
        if version != SNAPSHOT_FORMAT_VERSION:
            raise SnapshotError(
                f"Snapshot {path} has format_version={version!r}, "
                f"expected {SNAPSHOT_FORMAT_VERSION}"
            )

        try:
            snapshot = Snapshot.model_validate(raw)
        except ValidationError as e:
            raise SnapshotError(f"Invalid snapshot {path}: {e}") from e

        logger.debug(f"{STATE} Loaded snapshot for {snapshot.root_dir} ({len(snapshot.file_hashes)} files)")
        return snapshot

    def save(self, snapshot: Snapshot) -> Path:
        """Persist a snapshot with write-temp-then-rename."""
        path = self.path_for(snapshot.root_dir)
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = snapshot.model_dump_json(indent=2)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        logger.debug(f"{STATE} Saved snapshot {path} ({len(snapshot.file_hashes)} files)")
        return path

    def delete(self, root_dir: str | Path) -> bool:
        """Discard the snapshot for a root. Returns True if one existed."""
        path = self.path_for(root_dir)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"{STATE} Deleted snapshot for {root_dir}")
        return True


__all__ = ["SnapshotStore", "root_key"]
