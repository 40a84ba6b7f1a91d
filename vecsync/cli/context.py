# vecsync/cli/context.py
"""
Central CLI context: one place that turns a config file into live components.

Commands never build stores, embedders or orchestrators themselves.

Usage:
    from vecsync.cli.context import CLIContext

    ctx = CLIContext.load(config_path)
    stats = ctx.orchestrator.index_codebase(root)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from vecsync.config import VecSyncConfig, load_config
from vecsync.ingest.alias import AliasSwapCoordinator
from vecsync.ingest.chunking import build_chunker
from vecsync.ingest.diff import FileSynchronizer, IndexOrchestrator
from vecsync.ingest.runtime import RetryPolicy, RunRegistry
from vecsync.ingest.state import SnapshotStore
from vecsync.llm.embedding.registry import create_embedder
from vecsync.logging import configure_logging, get_logger
from vecsync.logging.tags import CLI
from vecsync.vector_db.registry import create_vector_store

logger = get_logger(__name__)


@dataclass
class CLIContext:
    """
    Resolved configuration plus lazily created pipeline components.

    Stores and embedders may open network connections, so nothing is
    created until a command asks for it.
    """

    config: VecSyncConfig
    config_path: Optional[Path] = None
    _store: Any = field(default=None, init=False, repr=False)
    _embedder: Any = field(default=None, init=False, repr=False)
    _orchestrator: Optional[IndexOrchestrator] = field(default=None, init=False, repr=False)

    @classmethod
    def load(cls, config_path: Optional[Path] = None, verbose: bool = False) -> "CLIContext":
        """Load config (defaults + optional user file) and set up logging."""
        config = load_config(config_path)
        configure_logging("DEBUG" if verbose else config.logging.level, rich=True)
        logger.debug(f"{CLI} Loaded config (state_dir={config.state_dir})")
        return cls(config=config, config_path=config_path)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def store(self) -> Any:
        if self._store is None:
            self._store = create_vector_store(self.config.vector_db, timeout=self.config.indexing.call_timeout)
        return self._store

    @property
    def embedder(self) -> Any:
        if self._embedder is None:
            self._embedder = create_embedder(self.config.embedding, timeout=self.config.indexing.call_timeout)
        return self._embedder

    @property
    def snapshots(self) -> SnapshotStore:
        return SnapshotStore(self.config.state_dir)

    @property
    def synchronizer(self) -> FileSynchronizer:
        return FileSynchronizer(self.snapshots, self.config.scan)

    @property
    def orchestrator(self) -> IndexOrchestrator:
        if self._orchestrator is None:
            indexing = self.config.indexing
            self._orchestrator = IndexOrchestrator(
                store=self.store,
                embedder=self.embedder,
                chunker=build_chunker(self.config.chunking),
                synchronizer=self.synchronizer,
                config=indexing,
                retry=RetryPolicy.from_config(indexing),
                run_registry=RunRegistry(self.config.state_dir),
            )
        return self._orchestrator

    def coordinator(self) -> AliasSwapCoordinator:
        return AliasSwapCoordinator(self.orchestrator, self.config.alias)

    def display(self) -> str:
        """One-line summary, e.g. 'Embedding: local | VectorDB: qdrant'."""
        return f"Embedding: {self.config.embedding.plugin_name} | VectorDB: {self.config.vector_db.plugin_name}"


__all__ = ["CLIContext"]
