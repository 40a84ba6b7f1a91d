"""
Chunking for source files.

- AstChunker: tree-sitter segments packed up to max_chunk_size
- LineChunker: line windows with overlap (fallback)
"""

from __future__ import annotations

from vecsync.config.schema import ChunkingConfig

from .ast_splitter import AstChunker
from .base import Chunk, Chunker
from .languages import EXTENSION_LANGUAGES, has_grammar, language_for_path
from .line_splitter import LineChunker


def build_chunker(config: ChunkingConfig | None = None) -> AstChunker:
    """Create the default chunker from configuration."""
    config = config or ChunkingConfig()
    return AstChunker(max_chunk_size=config.max_chunk_size, overlap_lines=config.overlap_lines)


__all__ = [
    "Chunk",
    "Chunker",
    "AstChunker",
    "LineChunker",
    "EXTENSION_LANGUAGES",
    "has_grammar",
    "language_for_path",
    "build_chunker",
]
