# vecsync/ingest/diff/scanner.py
"""
File scanner for incremental indexing.

Walks a root directory, applies ignore/include rules and fingerprints every
surviving file. Fingerprints from the previous snapshot are reused when a
file's size and mtime are unchanged, so an idle tree is scanned without
reading file contents.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pathspec

from vecsync.exceptions import InvalidRootError
from vecsync.ingest.hashing import hash_file
from vecsync.ingest.state.schema import FileFingerprint, Snapshot
from vecsync.logging import get_logger
from vecsync.logging.tags import SCAN

logger = get_logger(__name__)

IGNORE_FILES = (".gitignore", ".vecsyncignore")


@dataclass
class ScanResult:
    """Result of scanning a root directory."""

    root: str
    files: Dict[str, FileFingerprint] = field(default_factory=dict)
    errors: List[Tuple[str, str]] = field(default_factory=list)
    hashed: int = 0  # files actually read this scan
    reused: int = 0  # fingerprints carried over from the snapshot

    @property
    def total_scanned(self) -> int:
        return len(self.files)


def read_ignore_files(root: Path) -> List[str]:
    """Collect patterns from ignore files at the root, skipping comments."""
    patterns: List[str] = []
    for name in IGNORE_FILES:
        path = root / name
        if not path.is_file():
            continue
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"{SCAN} Cannot read {path}: {e}")
            continue
        for line in lines:
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                patterns.append(stripped)
    return patterns


def resolve_root(root_dir: str | Path) -> Path:
    """Resolve and validate a root directory."""
    root = Path(root_dir).expanduser()
    try:
        root = root.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Root directory does not exist: {root_dir}") from e
    if not root.is_dir():
        raise InvalidRootError(f"Root is not a directory: {root_dir}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise InvalidRootError(f"Root directory is not readable: {root_dir}")
    return root


class FileScanner:
    """
    Walks a directory tree and fingerprints matching files.

    Usage:
        scanner = FileScanner(ignore_patterns=["node_modules/"], include_extensions=[".py"])
        result = scanner.scan("/path/to/repo", previous=snapshot)
    """

    def __init__(
        self,
        ignore_patterns: Iterable[str],
        include_extensions: Iterable[str],
        *,
        workers: int = 8,
        verify_hashes: bool = False,
    ) -> None:
        self._patterns = list(ignore_patterns)
        self._extensions = {e.lower() for e in include_extensions}
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", self._patterns)
        self._workers = max(1, workers)
        self._verify = verify_hashes

    @property
    def ignore_patterns(self) -> List[str]:
        return list(self._patterns)

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        if is_dir:
            return self._spec.match_file(rel_path.rstrip("/") + "/")
        return self._spec.match_file(rel_path)

    def is_included(self, rel_path: str) -> bool:
        if not self._extensions:
            return True
        return os.path.splitext(rel_path)[1].lower() in self._extensions

    def walk(self, root: Path, errors: List[Tuple[str, str]]) -> List[Tuple[str, os.stat_result]]:
        """Return (relative_path, stat) for every candidate file under root."""
        found: List[Tuple[str, os.stat_result]] = []
        stack = [""]

        while stack:
            rel_dir = stack.pop()
            abs_dir = root / rel_dir if rel_dir else root
            try:
                entries = list(os.scandir(abs_dir))
            except OSError as e:
                if not rel_dir:
                    raise InvalidRootError(f"Cannot list root directory {root}: {e}") from e
                logger.warning(f"{SCAN} Cannot list {rel_dir}: {e}")
                errors.append((rel_dir + "/", str(e)))
                continue

            for entry in entries:
                rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if not self.is_ignored(rel, is_dir=True):
                            stack.append(rel)
                        continue
                    if not entry.is_file():
                        continue
                    if self.is_ignored(rel) or not self.is_included(rel):
                        continue
                    found.append((rel, entry.stat()))
                except OSError as e:
                    logger.warning(f"{SCAN} Cannot stat {rel}: {e}")
                    errors.append((rel, str(e)))

        found.sort(key=lambda item: item[0])
        return found

    def scan(self, root_dir: str | Path, previous: Optional[Snapshot] = None) -> ScanResult:
        """
        Fingerprint every matching file under root_dir.

        Args:
            root_dir: Directory to scan.
            previous: Snapshot whose fingerprints may be reused for files
                with unchanged size and mtime.

        Raises:
            InvalidRootError: If the root is missing or unreadable.
        """
        root = resolve_root(root_dir)
        result = ScanResult(root=str(root))

        candidates = self.walk(root, result.errors)
        to_hash: List[Tuple[str, os.stat_result]] = []

        for rel, st in candidates:
            known = previous.get(rel) if previous is not None else None
            if known is not None and not self._verify and known.same_stat(st.st_size, st.st_mtime_ns):
                result.files[rel] = known
                result.reused += 1
            else:
                to_hash.append((rel, st))

        def _fingerprint(item: Tuple[str, os.stat_result]) -> FileFingerprint:
            rel, st = item
            return FileFingerprint(
                path=rel,
                hash=hash_file(root / rel),
                size=st.st_size,
                mtime_ns=st.st_mtime_ns,
            )

        if to_hash:
            with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="vecsync-scan") as pool:
                futures = [(item[0], pool.submit(_fingerprint, item)) for item in to_hash]
                for rel, future in futures:
                    try:
                        result.files[rel] = future.result()
                        result.hashed += 1
                    except OSError as e:
                        logger.warning(f"{SCAN} Cannot read {rel}: {e}")
                        result.errors.append((rel, str(e)))

        logger.info(
            f"{SCAN} Scanned {root}: {result.total_scanned} files "
            f"(hashed {result.hashed}, reused {result.reused}, errors {len(result.errors)})"
        )
        return result


__all__ = ["IGNORE_FILES", "ScanResult", "FileScanner", "read_ignore_files", "resolve_root"]
