"""
Vector store abstraction.

The orchestrator talks to stores only through the VectorStore protocol;
concrete backends are plugins selected by name from configuration.
"""

from .base import (
    DOCUMENT_FIELDS,
    AliasCapable,
    Filter,
    SearchMode,
    SearchOptions,
    VectorDocument,
    VectorSearchResult,
    VectorStore,
    matches_filter,
)
from .registry import available_vector_db_plugins, create_vector_store, get_vector_db_plugin

__all__ = [
    "DOCUMENT_FIELDS",
    "AliasCapable",
    "Filter",
    "SearchMode",
    "SearchOptions",
    "VectorDocument",
    "VectorSearchResult",
    "VectorStore",
    "matches_filter",
    "available_vector_db_plugins",
    "create_vector_store",
    "get_vector_db_plugin",
]
