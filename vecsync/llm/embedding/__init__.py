"""Embedding providers."""

from .base import EmbeddingProvider, EmbeddingVector
from .registry import available_embedding_plugins, create_embedder, get_embedding_plugin

__all__ = [
    "EmbeddingProvider",
    "EmbeddingVector",
    "available_embedding_plugins",
    "create_embedder",
    "get_embedding_plugin",
]
