# vecsync/llm/embedding/registry.py
"""
Embedding plugin registry.

A class in vecsync.llm.embedding.plugins is registered if it defines a
string `plugin_name` and a callable `embed_batch`.
"""

from __future__ import annotations

from typing import Any, List, Optional

from vecsync.config.schema import PluginConfig
from vecsync.registry import PluginNotFoundError, PluginRegistry

EMBEDDING_REGISTRY = PluginRegistry("embedding", "vecsync.llm.embedding.plugins", "embed_batch")


def get_embedding_plugin(name: str) -> type:
    return EMBEDDING_REGISTRY.get(name)


def available_embedding_plugins() -> List[str]:
    return EMBEDDING_REGISTRY.available()


def create_embedder(config: PluginConfig, timeout: Optional[float] = None) -> Any:
    """
    Instantiate the configured provider; None-valued kwargs are dropped.

    timeout applies to providers that take one unless kwargs set their own.
    """
    kwargs = {k: v for k, v in config.kwargs.items() if v is not None}
    defaults = {"timeout": timeout} if timeout is not None else None
    return EMBEDDING_REGISTRY.create(config.plugin_name, defaults, **kwargs)


__all__ = [
    "EMBEDDING_REGISTRY",
    "PluginNotFoundError",
    "get_embedding_plugin",
    "available_embedding_plugins",
    "create_embedder",
]
