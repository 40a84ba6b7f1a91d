# vecsync/ingest/chunking/line_splitter.py
"""
Line-window chunker.

Used directly for languages without a grammar and as the fallback when a
parse fails. Windows are packed line by line up to max_chunk_size
characters; each new window repeats up to overlap_lines trailing lines of
the previous one. A single line longer than max_chunk_size is cut into
character slices.

Chunker ID format: "line:{max_chunk_size}:{overlap_lines}"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from .base import Chunk


def split_lines(content: str) -> List[str]:
    """Split on "\\n" only, keeping line endings, so rows match tree-sitter's."""
    parts = content.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


class SourceLines:
    """Lines of one file with prefix sums for O(1) range sizes."""

    def __init__(self, content: str) -> None:
        self.lines = split_lines(content)
        self._offsets = [0]
        for line in self.lines:
            self._offsets.append(self._offsets[-1] + len(line))

    def __len__(self) -> int:
        return len(self.lines)

    def size(self, start: int, end: int) -> int:
        """Characters in lines start..end (0-based, inclusive)."""
        return self._offsets[end + 1] - self._offsets[start]

    def text(self, start: int, end: int) -> str:
        return "".join(self.lines[start : end + 1])


@dataclass(frozen=True)
class Piece:
    """A chunk body before numbering. start/end are 0-based line indices."""

    start: int
    end: int
    text: str


def line_windows(source: SourceLines, lo: int, hi: int, max_size: int, overlap: int) -> List[Piece]:
    """
    Split lines lo..hi into windows of at most max_size characters.

    Every line in the range is introduced by exactly one window; a window
    may additionally repeat up to `overlap` lines from the previous one.
    """
    pieces: List[Piece] = []
    i = lo
    while i <= hi:
        if source.size(i, i) > max_size:
            line = source.lines[i]
            for offset in range(0, len(line), max_size):
                pieces.append(Piece(i, i, line[offset : offset + max_size]))
            i += 1
            continue

        start = max(i - overlap, lo) if pieces else i
        while start < i and source.size(start, i) > max_size:
            start += 1

        end = i
        while end + 1 <= hi and source.size(start, end + 1) <= max_size:
            end += 1

        pieces.append(Piece(start, end, source.text(start, end)))
        i = end + 1
    return pieces


def number_chunks(pieces: Iterable[Piece], relative_path: str, language: str) -> List[Chunk]:
    """Turn pieces into Chunks with 1-based lines and sequence indexes."""
    return [
        Chunk(
            content=piece.text,
            relative_path=relative_path,
            start_line=piece.start + 1,
            end_line=piece.end + 1,
            language=language,
            sequence_index=index,
        )
        for index, piece in enumerate(pieces)
    ]


@dataclass
class LineChunker:
    """
    Fixed-size line-window chunker with overlap.

    Example:
        >>> chunker = LineChunker(max_chunk_size=2500, overlap_lines=5)
        >>> chunks = chunker.split(text, "text", "notes/readme.txt")
    """

    plugin_name: str = field(default="line", repr=False)
    max_chunk_size: int = 2500
    overlap_lines: int = 5

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be >= 1, got {self.max_chunk_size}")
        if self.overlap_lines < 0:
            raise ValueError(f"overlap_lines must be >= 0, got {self.overlap_lines}")

    @property
    def chunker_id(self) -> str:
        return f"{self.plugin_name}:{self.max_chunk_size}:{self.overlap_lines}"

    def split(self, content: str, language: str, relative_path: str) -> List[Chunk]:
        if not content or not content.strip():
            return []
        source = SourceLines(content)
        pieces = line_windows(source, 0, len(source) - 1, self.max_chunk_size, self.overlap_lines)
        return number_chunks(pieces, relative_path, language)


__all__ = ["split_lines", "SourceLines", "Piece", "line_windows", "number_chunks", "LineChunker"]
