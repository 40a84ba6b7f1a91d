# vecsync/ingest/alias.py
"""
Zero-downtime reindexing via collection aliases.

Readers query a stable alias. A reindex builds a complete new collection
next to the live one, repoints the alias in a single store call, waits for
in-flight reads to drain and then drops the old collection. If the build
fails, or any file is missing from the new collection, the alias is never
touched and the new collection is dropped.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from vecsync.config.schema import AliasConfig
from vecsync.exceptions import AliasSwapError, ErrorKind, IndexRunError, ProviderError, VecSyncError
from vecsync.ingest.diff.executor import IndexOrchestrator, IndexRun, IndexStats
from vecsync.ingest.diff.scanner import resolve_root
from vecsync.ingest.progress import ProgressCallback
from vecsync.ingest.runtime import CancellationToken
from vecsync.logging import get_logger
from vecsync.logging.tags import ALIAS
from vecsync.vector_db.base import AliasCapable

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AliasSwapResult:
    alias: str
    collection: str
    previous_collection: Optional[str]
    stats: IndexStats


class AliasSwapCoordinator:
    """
    Builds a fresh collection and atomically repoints an alias at it.

    Usage:
        coordinator = AliasSwapCoordinator(orchestrator, AliasConfig(drain_seconds=5))
        result = coordinator.reindex("/path/to/repo")
        print(result.collection, result.previous_collection)
    """

    def __init__(
        self,
        orchestrator: IndexOrchestrator,
        config: Optional[AliasConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        store = orchestrator.store
        if not isinstance(store, AliasCapable):
            raise AliasSwapError(f"Vector store '{getattr(store, 'plugin_name', store)}' does not support aliases")
        self._orchestrator = orchestrator
        self._store = store
        self._config = config or AliasConfig()
        self._sleep = sleep
        self._clock = clock

    def alias_for(self, root_dir: str | Path, alias: Optional[str] = None) -> str:
        return alias or self._orchestrator.collection_name(resolve_root(root_dir))

    def occupied_by_collection(self, alias: str) -> bool:
        """True if a physical collection (not an alias) already uses this name."""
        if self._call(self._store.get_alias_target, alias, description=f"resolve alias {alias}"):
            return False
        return self._call(self._orchestrator.store.has_collection, alias, description=f"check {alias}")

    def new_collection_name(self, alias: str) -> str:
        """<alias>_<UTC milliseconds>, unique per call within the store."""
        stamp = int(self._clock().timestamp() * 1000)
        name = f"{alias}_{stamp}"
        while self._call(self._orchestrator.store.has_collection, name, description=f"check {name}"):
            stamp += 1
            name = f"{alias}_{stamp}"
        return name

    def reindex(
        self,
        root_dir: str | Path,
        on_progress: Optional[ProgressCallback] = None,
        *,
        alias: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AliasSwapResult:
        """
        Fully reindex a root into a new collection and swap the alias.

        The alias only moves if every file made it into the new collection.

        Raises:
            RunInProgressError: Another run holds the lock for this root.
            IndexRunError: The build failed, some files could not be indexed,
                or the swap itself failed. The alias and snapshot are
                unchanged and the new collection has been dropped.
        """
        root = resolve_root(root_dir)
        alias = self.alias_for(root, alias)

        with self._orchestrator.run_lock(root):
            collection = self.new_collection_name(alias)
            logger.info(f"{ALIAS} Building '{collection}' for alias '{alias}'")

            try:
                run = self._orchestrator.build(
                    root,
                    collection,
                    on_progress,
                    cancel_token=cancel_token,
                    use_snapshot=False,
                )
                self._require_complete(run)
                previous = self._swap(alias, collection, run.stats)
            except BaseException:
                self._discard(collection)
                raise

            self._orchestrator.commit(run)

        if previous and previous != collection:
            self._retire(previous)

        logger.info(f"{ALIAS} Reindexed {root}: alias '{alias}' -> '{collection}' ({run.stats})")
        return AliasSwapResult(alias=alias, collection=collection, previous_collection=previous, stats=run.stats)

    def _call(self, fn: Callable[..., T], *args: Any, description: str) -> T:
        return self._orchestrator.retry.call(fn, *args, description=description)

    def _require_complete(self, run: IndexRun) -> None:
        missing = sorted(run.failed_paths | set(run.diff.errors))
        if not missing:
            return
        shown = ", ".join(missing[:5]) + (f" and {len(missing) - 5} more" if len(missing) > 5 else "")
        logger.error(f"{ALIAS} Build of '{run.collection}' is incomplete, keeping the alias: {shown}")
        raise IndexRunError(
            f"Reindex incomplete, {len(missing)} files could not be indexed: {shown}",
            stats=run.stats,
            kind=ErrorKind.PER_FILE,
        )

    def _swap(self, alias: str, collection: str, stats: IndexStats) -> Optional[str]:
        store = self._orchestrator.store
        try:
            previous = self._call(self._store.get_alias_target, alias, description=f"resolve alias {alias}")
            if previous is None and self._call(store.has_collection, alias, description=f"check {alias}"):
                # Names are shared between collections and aliases, so readers
                # see no index between this drop and the alias creation below.
                logger.warning(
                    f"{ALIAS} Replacing physical collection '{alias}' with an alias to '{collection}'"
                )
                self._call(store.drop_collection, alias, description=f"drop {alias}")
            self._call(self._store.set_alias_target, alias, collection, description=f"alias {alias}")
        except ProviderError as e:
            logger.error(f"{ALIAS} Could not point alias '{alias}' at '{collection}': {e}")
            raise IndexRunError(f"Alias swap failed: {e}", stats=stats, kind=e.kind, cause=e) from e
        logger.info(f"{ALIAS} Alias '{alias}': {previous or '<none>'} -> '{collection}'")
        return previous

    def _discard(self, collection: str) -> None:
        try:
            self._call(self._orchestrator.store.drop_collection, collection, description=f"drop {collection}")
            logger.info(f"{ALIAS} Dropped partial collection '{collection}'")
        except (ProviderError, VecSyncError) as e:
            logger.error(f"{ALIAS} Could not drop partial collection '{collection}': {e}")

    def _retire(self, collection: str) -> None:
        if self._config.drain_seconds > 0:
            logger.info(f"{ALIAS} Waiting {self._config.drain_seconds}s before dropping '{collection}'")
            self._sleep(self._config.drain_seconds)
        try:
            self._call(self._orchestrator.store.drop_collection, collection, description=f"drop {collection}")
            logger.info(f"{ALIAS} Dropped previous collection '{collection}'")
        except (ProviderError, VecSyncError) as e:
            logger.error(f"{ALIAS} Could not drop previous collection '{collection}': {e}")


__all__ = ["AliasSwapResult", "AliasSwapCoordinator"]
