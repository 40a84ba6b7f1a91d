# vecsync/ingest/chunking/ast_splitter.py
"""
Syntax-aware chunker built on tree-sitter.

The file is partitioned into line segments, one per top-level syntax node.
Lines between nodes (blank lines, stray text) belong to the segment of the
next node; trailing lines belong to the last one. Segments too large for a
chunk are partitioned again using their node's children, and split into
overlapping line windows only when no smaller syntactic unit exists.
Consecutive segments are then packed greedily up to max_chunk_size.

Files without a grammar, or whose parse raises, go through LineChunker.

Chunker ID format: "ast:{max_chunk_size}:{overlap_lines}"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from vecsync.logging import get_logger
from vecsync.logging.tags import CHUNKING

from .base import Chunk
from .languages import get_parser
from .line_splitter import LineChunker, Piece, SourceLines, line_windows, number_chunks

logger = get_logger(__name__)


@dataclass
class _Segment:
    start: int
    end: int
    node: Optional[Any] = None


def _node_rows(node: Any) -> tuple[int, int]:
    start = node.start_point[0]
    end_row, end_col = node.end_point
    # A node ending at column 0 stops at the newline of the previous row
    if end_col == 0 and end_row > start:
        end_row -= 1
    return start, end_row


def partition(nodes: Sequence[Any], lo: int, hi: int) -> List[_Segment]:
    """Partition lines lo..hi into contiguous segments following nodes."""
    segments: List[_Segment] = []
    cursor = lo
    for node in nodes:
        _, end = _node_rows(node)
        end = min(end, hi)
        if end < cursor:
            continue
        segments.append(_Segment(cursor, end, node))
        cursor = end + 1
        if cursor > hi:
            break

    if cursor <= hi:
        if segments:
            segments[-1].end = hi
        else:
            segments.append(_Segment(lo, hi))
    return segments


@dataclass
class AstChunker:
    """
    Tree-sitter chunker with a line-window fallback.

    Example:
        >>> chunker = AstChunker(max_chunk_size=2500, overlap_lines=5)
        >>> chunks = chunker.split(source, "python", "pkg/module.py")
    """

    plugin_name: str = field(default="ast", repr=False)
    max_chunk_size: int = 2500
    overlap_lines: int = 5

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be >= 1, got {self.max_chunk_size}")
        if self.overlap_lines < 0:
            raise ValueError(f"overlap_lines must be >= 0, got {self.overlap_lines}")
        self._fallback = LineChunker(max_chunk_size=self.max_chunk_size, overlap_lines=self.overlap_lines)

    @property
    def chunker_id(self) -> str:
        return f"{self.plugin_name}:{self.max_chunk_size}:{self.overlap_lines}"

    def split(self, content: str, language: str, relative_path: str) -> List[Chunk]:
        """
        Split one file into chunks.

        Args:
            content: Decoded file content.
            language: Language name from language_for_path().
            relative_path: Path recorded on every chunk.

        Returns:
            Chunks ordered by sequence_index; empty for blank content.
        """
        if not content or not content.strip():
            return []

        parser = get_parser(language)
        if parser is None:
            return self._fallback.split(content, language, relative_path)

        try:
            tree = parser.parse(content.encode("utf-8"))
        except Exception as e:
            logger.warning(f"{CHUNKING} Parse failed for {relative_path} ({language}), using line windows: {e}")
            return self._fallback.split(content, language, relative_path)

        source = SourceLines(content)
        segments = partition(tree.root_node.children, 0, len(source) - 1)
        pieces = self._pack(source, segments)
        return number_chunks(pieces, relative_path, language)

    def _fit(self, source: SourceLines, segment: _Segment) -> List[Any]:
        """Refine a segment until every part fits, or fall back to windows."""
        if source.size(segment.start, segment.end) <= self.max_chunk_size:
            return [segment]

        children = segment.node.children if segment.node is not None else []
        if children:
            parts = partition(children, segment.start, segment.end)
            if any(part.node is not None for part in parts):
                refined: List[Any] = []
                for part in parts:
                    refined.extend(self._fit(source, part))
                return refined

        return line_windows(source, segment.start, segment.end, self.max_chunk_size, self.overlap_lines)

    def _pack(self, source: SourceLines, segments: List[_Segment]) -> List[Piece]:
        """Greedily merge consecutive fitting segments; windows stand alone."""
        pieces: List[Piece] = []
        current: Optional[tuple[int, int]] = None

        def flush() -> None:
            nonlocal current
            if current is not None:
                pieces.append(Piece(current[0], current[1], source.text(*current)))
                current = None

        for segment in segments:
            for part in self._fit(source, segment):
                if isinstance(part, Piece):
                    flush()
                    pieces.append(part)
                    continue
                if current is not None and source.size(current[0], part.end) <= self.max_chunk_size:
                    current = (current[0], part.end)
                else:
                    flush()
                    current = (part.start, part.end)
        flush()
        return pieces


__all__ = ["AstChunker", "partition"]
