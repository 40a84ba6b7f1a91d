"""Configuration loading and schema."""

from .loader import DEFAULT_CONFIG_PATH, load_config
from .schema import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_INCLUDE_EXTENSIONS,
    AliasConfig,
    ChunkingConfig,
    IndexingConfig,
    LoggingConfig,
    PluginConfig,
    ScanConfig,
    VecSyncConfig,
)

__all__ = [
    "load_config",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_IGNORE_PATTERNS",
    "DEFAULT_INCLUDE_EXTENSIONS",
    "PluginConfig",
    "ScanConfig",
    "ChunkingConfig",
    "IndexingConfig",
    "AliasConfig",
    "LoggingConfig",
    "VecSyncConfig",
]
