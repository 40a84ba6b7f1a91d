# vecsync/config/schema.py
"""
Pydantic schema for vecsync configuration.

Rules:
- Strict validation
- No unknown keys
- Every block has defaults, so an empty user file is valid
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_IGNORE_PATTERNS: list[str] = [
    ".git/",
    ".svn/",
    ".hg/",
    "node_modules/",
    "bower_components/",
    "__pycache__/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".venv/",
    "venv/",
    "dist/",
    "build/",
    "out/",
    "target/",
    "coverage/",
    ".idea/",
    ".vscode/",
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.lock",
    "*.log",
]

DEFAULT_INCLUDE_EXTENSIONS: list[str] = [
    ".py",
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".go",
    ".rs",
    ".java",
    ".kt",
    ".scala",
    ".c",
    ".h",
    ".cpp",
    ".cc",
    ".hpp",
    ".cs",
    ".php",
    ".rb",
    ".swift",
    ".m",
    ".mm",
    ".md",
    ".markdown",
]


class PluginConfig(BaseModel):
    """
    Generic plugin configuration block.

    Examples:
        >>> PluginConfig(plugin_name="qdrant", kwargs={"host": "localhost"})
    """

    plugin_name: str = Field(..., description="Plugin name in the registry")
    kwargs: dict[str, Any] = Field(default_factory=dict, description="Plugin init kwargs")

    model_config = ConfigDict(extra="forbid")


class ScanConfig(BaseModel):
    """File discovery and fingerprinting."""

    ignore_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    include_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE_EXTENSIONS))
    read_ignore_files: bool = Field(
        default=True, description="Also read .gitignore and .vecsyncignore from the root"
    )
    verify_hashes: bool = Field(
        default=False, description="Re-hash files even when size and mtime are unchanged"
    )
    workers: int = Field(default=8, ge=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("include_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> Any:
        """Ensure all extensions start with a dot and are lowercase."""
        if not isinstance(v, list):
            return v
        normalized = []
        for ext in v:
            norm = str(ext).lower()
            if not norm.startswith("."):
                norm = f".{norm}"
            normalized.append(norm)
        return normalized


class ChunkingConfig(BaseModel):
    max_chunk_size: int = Field(default=2500, ge=64, description="Maximum characters per chunk")
    overlap_lines: int = Field(default=5, ge=0, description="Trailing lines repeated when splitting")

    model_config = ConfigDict(extra="forbid")


class IndexingConfig(BaseModel):
    """Orchestrator tuning: batching, concurrency, retries, progress."""

    collection_prefix: str = Field(default="code_chunks")
    batch_size: int = Field(default=32, ge=1)
    embed_concurrency: int = Field(default=4, ge=1)
    max_pending_batches: int = Field(default=8, ge=1)
    call_timeout: float = Field(default=30.0, gt=0, description="Seconds per external call")
    max_attempts: int = Field(default=4, ge=1)
    backoff_initial: float = Field(default=0.5, ge=0)
    backoff_max: float = Field(default=8.0, ge=0)
    progress_interval: float = Field(default=0.5, ge=0)
    query_limit: int = Field(default=16384, ge=1, description="Max ids fetched per path lookup")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _pending_covers_workers(self) -> "IndexingConfig":
        if self.max_pending_batches < self.embed_concurrency:
            self.max_pending_batches = self.embed_concurrency
        return self


class AliasConfig(BaseModel):
    drain_seconds: float = Field(
        default=5.0, ge=0, description="Grace period before the old collection is dropped"
    )

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")

    model_config = ConfigDict(extra="forbid")


class VecSyncConfig(BaseModel):
    embedding: PluginConfig = Field(default_factory=lambda: PluginConfig(plugin_name="local"))
    vector_db: PluginConfig = Field(default_factory=lambda: PluginConfig(plugin_name="qdrant"))
    scan: ScanConfig = Field(default_factory=ScanConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    alias: AliasConfig = Field(default_factory=AliasConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".vecsync")

    model_config = ConfigDict(extra="forbid")

    @field_validator("state_dir", mode="before")
    @classmethod
    def expand_state_dir(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


__all__ = [
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
