# vecsync/vector_db/base.py
"""
Base types for vector store plugins.

This module defines the canonical types every store implementation must
conform to. The orchestrator depends only on these, never on a backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Set, runtime_checkable

# Equality on each field; a list/tuple/set value means "any of"
Filter = Mapping[str, Any]

DOCUMENT_FIELDS = (
    "id",
    "content",
    "relative_path",
    "start_line",
    "end_line",
    "file_extension",
    "metadata",
)


@dataclass
class VectorDocument:
    """
    One stored chunk.

    id is deterministic (see vecsync.ingest.hashing.compute_chunk_id), so
    inserting the same chunk twice overwrites rather than duplicates.
    """

    id: str
    vector: List[float]
    content: str
    relative_path: str
    start_line: int
    end_line: int
    file_extension: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        """Stored fields other than the vector."""
        return {
            "id": self.id,
            "content": self.content,
            "relative_path": self.relative_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "file_extension": self.file_extension,
            "metadata": dict(self.metadata),
        }


class SearchMode(str, Enum):
    VECTOR = "vector"
    TEXT = "text"
    HYBRID = "hybrid"


@dataclass
class SearchOptions:
    mode: SearchMode = SearchMode.VECTOR
    top_k: int = 10
    filter: Optional[Filter] = None
    query_text: Optional[str] = None


@dataclass(frozen=True)
class VectorSearchResult:
    document: VectorDocument
    score: float
    rerank_score: Optional[float] = None


def matches_filter(payload: Mapping[str, Any], filter: Optional[Filter]) -> bool:
    """Evaluate a filter mapping against a payload (AND of conditions)."""
    if not filter:
        return True
    for key, expected in filter.items():
        value = payload.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


@runtime_checkable
class VectorStore(Protocol):
    """
    Protocol for vector store plugins.

    Errors are reported with the ProviderError hierarchy: TransientError for
    retryable failures, CapacityExceededError when the backend refuses a new
    collection, FatalConfigurationError for credentials and schema problems.
    """

    plugin_name: str

    def create_collection(self, name: str, dimension: int) -> None: ...

    def drop_collection(self, name: str) -> None: ...

    def has_collection(self, name: str) -> bool: ...

    def list_collections(self) -> List[str]: ...

    def insert(self, collection: str, documents: Sequence[VectorDocument]) -> None:
        """Upsert documents keyed by id."""
        ...

    def delete(self, collection: str, ids: Sequence[str]) -> None: ...

    def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        options: SearchOptions,
    ) -> List[VectorSearchResult]: ...

    def query(
        self,
        collection: str,
        filter: Optional[Filter],
        output_fields: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Unranked scan returning the requested fields of matching documents."""
        ...

    def list_file_paths(self, collection: str, batch_size: int = 1000) -> Set[str]: ...

    def count(self, collection: str) -> int: ...


@runtime_checkable
class AliasCapable(Protocol):
    """Optional store capability: named aliases resolved by readers."""

    def get_alias_target(self, alias: str) -> Optional[str]: ...

    def set_alias_target(self, alias: str, collection: str) -> None:
        """Point alias at collection in a single atomic store operation."""
        ...


__all__ = [
    "Filter",
    "DOCUMENT_FIELDS",
    "VectorDocument",
    "SearchMode",
    "SearchOptions",
    "VectorSearchResult",
    "matches_filter",
    "VectorStore",
    "AliasCapable",
]
