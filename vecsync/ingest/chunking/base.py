# vecsync/ingest/chunking/base.py
"""
Core chunking types.

A Chunk is a line-addressable slice of one file. Chunkers are plain classes
satisfying the Chunker protocol, so the orchestrator can take any of them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Protocol, runtime_checkable

from vecsync.ingest.hashing import compute_chunk_id


@dataclass(frozen=True)
class Chunk:
    """
    One chunk of a source file.

    Lines are 1-based and inclusive. sequence_index counts chunks within the
    file from 0 and, with the path and content, determines the chunk id.
    """

    content: str
    relative_path: str
    start_line: int
    end_line: int
    language: str
    sequence_index: int

    @property
    def id(self) -> str:
        return compute_chunk_id(self.relative_path, self.sequence_index, self.content)

    @property
    def file_extension(self) -> str:
        return os.path.splitext(self.relative_path)[1].lower()

    @property
    def line_range(self) -> tuple[int, int]:
        return (self.start_line, self.end_line)


@runtime_checkable
class Chunker(Protocol):
    """Protocol for anything that splits file content into chunks."""

    @property
    def chunker_id(self) -> str:
        """Identifier of the chunker and its parameters."""
        ...

    def split(self, content: str, language: str, relative_path: str) -> List[Chunk]:
        """Split one file's content into ordered chunks."""
        ...


__all__ = ["Chunk", "Chunker"]
