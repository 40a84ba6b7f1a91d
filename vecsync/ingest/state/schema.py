# vecsync/ingest/state/schema.py
"""
Pydantic models for the persisted snapshot.

A Snapshot is the durable record of "what was last indexed successfully"
for one root directory. It is rewritten as a whole after each successful
cycle and never mutated in place on disk.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

SNAPSHOT_FORMAT_VERSION = 1


class FileFingerprint(BaseModel):
    """Fingerprint of one file, keyed by its path relative to the root."""

    path: str = Field(..., description="POSIX path relative to the root")
    hash: str = Field(..., description="sha256:<hex> digest of the file bytes")
    size: int = Field(..., ge=0)
    mtime_ns: int = Field(..., description="Modification time in nanoseconds")

    model_config = ConfigDict(frozen=True, extra="forbid")

    def same_stat(self, size: int, mtime_ns: int) -> bool:
        return self.size == size and self.mtime_ns == mtime_ns


class Snapshot(BaseModel):
    """
    Last successfully indexed state of a root directory.

    Attributes:
        format_version: Schema version; unknown versions are rejected on load.
        root_dir: Absolute root path.
        ignore_patterns: Ordered gitignore-style rules used for the walk.
        include_extensions: Extensions considered for indexing.
        file_hashes: Relative path to fingerprint.
    """

    format_version: int = Field(default=SNAPSHOT_FORMAT_VERSION)
    root_dir: str
    ignore_patterns: List[str] = Field(default_factory=list)
    include_extensions: List[str] = Field(default_factory=list)
    file_hashes: Dict[str, FileFingerprint] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="forbid")

    @field_validator("include_extensions")
    @classmethod
    def _sorted_unique(cls, v: List[str]) -> List[str]:
        return sorted(set(v))

    @classmethod
    def empty(
        cls,
        root_dir: str,
        ignore_patterns: List[str] | None = None,
        include_extensions: List[str] | None = None,
    ) -> "Snapshot":
        return cls(
            root_dir=root_dir,
            ignore_patterns=list(ignore_patterns or []),
            include_extensions=list(include_extensions or []),
        )

    @property
    def paths(self) -> set[str]:
        return set(self.file_hashes)

    def get(self, path: str) -> FileFingerprint | None:
        return self.file_hashes.get(path)


__all__ = ["SNAPSHOT_FORMAT_VERSION", "FileFingerprint", "Snapshot"]
