# vecsync/vector_db/registry.py
"""
Vector store plugin registry.

Plugins live in vecsync.vector_db.plugins and are discovered on first
lookup. A class is registered if it defines a string `plugin_name` and a
callable `create_collection`.
"""

from __future__ import annotations

from typing import Any, List, Optional

from vecsync.config.schema import PluginConfig
from vecsync.registry import PluginNotFoundError, PluginRegistry

VECTOR_DB_REGISTRY = PluginRegistry("vector_db", "vecsync.vector_db.plugins", "create_collection")


def get_vector_db_plugin(name: str) -> type:
    return VECTOR_DB_REGISTRY.get(name)


def available_vector_db_plugins() -> List[str]:
    return VECTOR_DB_REGISTRY.available()


def create_vector_store(config: PluginConfig, timeout: Optional[float] = None) -> Any:
    """Instantiate the configured store; timeout fills in an unset `timeout` kwarg."""
    kwargs = {k: v for k, v in config.kwargs.items() if v is not None}
    defaults = {"timeout": timeout} if timeout is not None else None
    return VECTOR_DB_REGISTRY.create(config.plugin_name, defaults, **kwargs)


__all__ = [
    "VECTOR_DB_REGISTRY",
    "PluginNotFoundError",
    "get_vector_db_plugin",
    "available_vector_db_plugins",
    "create_vector_store",
]
