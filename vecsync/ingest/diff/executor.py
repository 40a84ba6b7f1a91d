# vecsync/ingest/diff/executor.py
"""
Orchestrator for incremental indexing.

Drives the full pipeline for one root directory:
1. Load the snapshot and compute the diff
2. Delete chunks of deleted files
3. Chunk added/modified files, reusing chunks whose id and lines are unchanged
4. Embed batches on a bounded thread pool; upsert them on a pipelined worker
5. Delete stale chunks of modified files
6. Commit the snapshot for every file that made it through

The snapshot is only written after the store writes for a file are done,
so a crash at any point makes the next run redo work instead of skipping it.
"""

from __future__ import annotations

import hashlib
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from vecsync.config.schema import IndexingConfig
from vecsync.exceptions import (
    EmbeddingError,
    ErrorKind,
    IndexCancelledError,
    IndexRunError,
    PerFileError,
    ProviderError,
    SnapshotError,
)
from vecsync.ingest.chunking import Chunk, Chunker, language_for_path
from vecsync.ingest.progress import IndexPhase, ProgressCallback, ProgressReporter
from vecsync.ingest.runtime import CancellationToken, RetryPolicy, RunRegistry
from vecsync.ingest.state.schema import Snapshot
from vecsync.llm.embedding.base import EmbeddingProvider
from vecsync.logging import get_logger
from vecsync.logging.tags import INDEX
from vecsync.vector_db.base import AliasCapable, VectorDocument, VectorStore

from .differ import FileDiff
from .scanner import resolve_root
from .synchronizer import FileSynchronizer

logger = get_logger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    DIFFING = "diffing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    COMMITTING = "committing"
    FAILED = "failed"


@dataclass
class IndexStats:
    """Counters for one indexing run. Returned to the caller, never persisted."""

    files_processed: int = 0
    files_failed: int = 0
    files_deleted: int = 0
    chunks_created: int = 0
    chunks_embedded: int = 0
    chunks_reused: int = 0
    chunks_failed: int = 0
    duration_ms: int = 0
    error_details: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"files processed {self.files_processed}, failed {self.files_failed}, "
            f"deleted {self.files_deleted}; chunks created {self.chunks_created}, "
            f"embedded {self.chunks_embedded}, reused {self.chunks_reused}, "
            f"failed {self.chunks_failed} ({self.duration_ms} ms)"
        )


@dataclass
class _FileWork:
    path: str
    modified: bool
    old_ids: Set[str] = field(default_factory=set)
    new_ids: Set[str] = field(default_factory=set)


@dataclass
class _EmbeddedBatch:
    chunks: List[Chunk] = field(default_factory=list)
    vectors: List[List[float]] = field(default_factory=list)
    failures: Dict[str, Tuple[int, ProviderError]] = field(default_factory=dict)


@dataclass
class IndexRun:
    """
    A built but not yet committed run.

    build() returns it; commit() persists its snapshot. Keeping the two
    apart lets the alias swap happen in between.
    """

    root: Path
    collection: str
    previous: Optional[Snapshot]
    stats: IndexStats
    diff: FileDiff = field(default_factory=FileDiff)
    failed_paths: Set[str] = field(default_factory=set)
    force: bool = False
    state: RunState = RunState.IDLE
    committed: bool = False


class IndexOrchestrator:
    """
    Runs diff → chunk → embed → upsert → commit for a root directory.

    Usage:
        orchestrator = IndexOrchestrator(
            store=store,
            embedder=embedder,
            chunker=AstChunker(),
            synchronizer=FileSynchronizer(SnapshotStore(state_dir)),
            config=IndexingConfig(),
        )
        stats = orchestrator.index_codebase("/path/to/repo", on_progress=print)
    """

    def __init__(
        self,
        *,
        store: VectorStore,
        embedder: EmbeddingProvider,
        chunker: Chunker,
        synchronizer: FileSynchronizer,
        config: Optional[IndexingConfig] = None,
        retry: Optional[RetryPolicy] = None,
        run_registry: Optional[RunRegistry] = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._chunker = chunker
        self._sync = synchronizer
        self._config = config or IndexingConfig()
        self._retry = retry or RetryPolicy.from_config(self._config)
        self._registry = run_registry or RunRegistry(synchronizer.store.directory.parent)

    @property
    def store(self) -> VectorStore:
        return self._store

    @property
    def synchronizer(self) -> FileSynchronizer:
        return self._sync

    @property
    def config(self) -> IndexingConfig:
        return self._config

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    # =========================================================================
    # Naming and status
    # =========================================================================

    def collection_name(self, root_dir: str | Path) -> str:
        """Stable collection (or alias) name for a root: <prefix>_<md5[:8]>."""
        resolved = str(Path(root_dir).resolve())
        digest = hashlib.md5(resolved.encode("utf-8")).hexdigest()[:8]
        return f"{self._config.collection_prefix}_{digest}"

    def resolve_collection(self, name: str) -> str:
        """Physical collection behind a name, following an alias if one exists."""
        if isinstance(self._store, AliasCapable):
            target = self._store.get_alias_target(name)
            if target:
                return target
        return name

    def has_index(self, root_dir: str | Path, collection: Optional[str] = None) -> bool:
        """True iff a snapshot exists and the collection holds documents."""
        root = resolve_root(root_dir)
        if not self._sync.store.exists(root):
            return False
        physical = self.resolve_collection(collection or self.collection_name(root))
        if not self._store.has_collection(physical):
            return False
        return self._store.count(physical) > 0

    @contextmanager
    def run_lock(self, root_dir: str | Path) -> Iterator[None]:
        """Hold the per-root run lock; raises RunInProgressError if taken."""
        with self._registry.hold(resolve_root(root_dir)):
            yield

    # =========================================================================
    # Public entry points
    # =========================================================================

    def index_codebase(
        self,
        root_dir: str | Path,
        on_progress: Optional[ProgressCallback] = None,
        *,
        collection: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        force: bool = False,
    ) -> IndexStats:
        """
        Incrementally index a root directory.

        Args:
            root_dir: Directory to index.
            on_progress: Called with ProgressEvents; throttled, 100% always delivered.
            collection: Target collection or alias. Defaults to collection_name(root_dir).
            cancel_token: Cooperative cancellation.
            force: Re-embed every file regardless of the snapshot.

        Returns:
            IndexStats for the run.

        Raises:
            InvalidRootError: The root is missing or unreadable.
            RunInProgressError: Another run holds the lock for this root.
            IndexRunError: The run aborted; .stats holds partial counters.
            IndexCancelledError: The run was cancelled.
        """
        root = resolve_root(root_dir)
        with self.run_lock(root):
            physical = self.resolve_collection(collection or self.collection_name(root))
            run = self.build(root, physical, on_progress, cancel_token=cancel_token, force=force)
            self.commit(run)
        logger.info(f"{INDEX} Indexed {root} into '{physical}': {run.stats}")
        return run.stats

    def clear_index(self, root_dir: str | Path, collection: Optional[str] = None) -> bool:
        """
        Drop the root's collection and discard its snapshot.

        Returns:
            True if anything was removed.
        """
        root = resolve_root(root_dir)
        name = collection or self.collection_name(root)
        removed = False
        with self.run_lock(root):
            physical = self.resolve_collection(name)
            for target in {physical, name}:
                if self._store.has_collection(target):
                    self._retry.call(self._store.drop_collection, target, description=f"drop {target}")
                    removed = True
            removed = self._sync.store.delete(root) or removed
        logger.info(f"{INDEX} Cleared index for {root} ('{name}')")
        return removed

    # =========================================================================
    # Build
    # =========================================================================

    def build(
        self,
        root_dir: str | Path,
        collection: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        force: bool = False,
        use_snapshot: bool = True,
    ) -> IndexRun:
        """
        Apply the current diff to `collection` without committing.

        The caller must hold run_lock(root_dir). With use_snapshot=False the
        previous snapshot is ignored entirely and every file is indexed,
        which is what a build into a fresh collection needs.
        """
        root = resolve_root(root_dir)
        stats = IndexStats()
        run = IndexRun(root=root, collection=collection, previous=None, stats=stats, force=force)
        reporter = ProgressReporter(on_progress, interval=self._config.progress_interval)
        started = time.monotonic()

        try:
            self._transition(run, RunState.DIFFING)
            reporter.report(IndexPhase.SCANNING, 0.0, f"Scanning {root}")
            if use_snapshot:
                run.previous = self._load_snapshot(root, collection)
            run.diff = self._sync.diff(root, run.previous, force=force)
            for path, message in sorted(run.diff.errors.items()):
                stats.files_failed += 1
                stats.error_details.append(f"Scan error: {path}: {message}")
            reporter.report(IndexPhase.SCANNING, 1.0, f"Diff: {run.diff.summary}")

            self._check_cancel(run, cancel_token)
            self._ensure_collection(run, cancel_token)
            self._delete_removed(run, cancel_token)

            self._transition(run, RunState.CHUNKING)
            work, pending = self._chunk_changed(run, reporter, cancel_token)

            self._transition(run, RunState.EMBEDDING)
            self._embed_and_upsert(run, pending, reporter, cancel_token)

            reporter.report(IndexPhase.FINALIZING, 0.0, "Removing stale chunks")
            self._delete_stale(run, work, cancel_token)

            changed = run.diff.changed
            stats.files_processed = len(changed - run.failed_paths)
            stats.files_failed += len((changed | run.diff.deleted) & run.failed_paths)
            reporter.complete(f"Indexed {stats.files_processed} files")
            return run
        except IndexRunError:
            self._transition(run, RunState.FAILED)
            raise
        except ProviderError as e:
            self._transition(run, RunState.FAILED)
            stats.error_details.append(f"Run aborted: {e}")
            raise IndexRunError(f"Indexing aborted: {e}", stats=stats, kind=e.kind, cause=e) from e
        except Exception:
            self._transition(run, RunState.FAILED)
            raise
        finally:
            stats.duration_ms = int((time.monotonic() - started) * 1000)

    def commit(self, run: IndexRun) -> Snapshot:
        """Persist the snapshot for everything the run applied successfully."""
        if run.state == RunState.FAILED:
            raise IndexRunError("Cannot commit a failed run", stats=run.stats, kind=ErrorKind.FATAL)
        self._transition(run, RunState.COMMITTING)
        snapshot = self._sync.commit(run.root, run.diff.without(run.failed_paths), run.previous)
        run.committed = True
        self._transition(run, RunState.IDLE)
        return snapshot

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    def _transition(self, run: IndexRun, state: RunState) -> None:
        logger.debug(f"{INDEX} {run.root}: {run.state.value} -> {state.value}")
        run.state = state

    def _check_cancel(self, run: IndexRun, token: Optional[CancellationToken]) -> None:
        if token is not None and token.cancelled:
            logger.warning(f"{INDEX} Run for {run.root} cancelled")
            raise IndexCancelledError(run.stats)

    def _load_snapshot(self, root: Path, collection: str) -> Optional[Snapshot]:
        try:
            previous = self._sync.store.load(root)
        except SnapshotError as e:
            logger.warning(f"{INDEX} Ignoring unusable snapshot, reindexing everything: {e}")
            return None
        if previous is not None and not self._store.has_collection(collection):
            logger.warning(f"{INDEX} Collection '{collection}' is missing, ignoring snapshot for {root}")
            return None
        return previous

    def _ensure_collection(self, run: IndexRun, token: Optional[CancellationToken]) -> None:
        if self._store.has_collection(run.collection):
            return
        dimension = self._retry.call(self._embedder.dimension, description="embedding dimension", cancel_token=token)
        self._retry.call(
            self._store.create_collection,
            run.collection,
            dimension,
            description=f"create {run.collection}",
            cancel_token=token,
        )

    def _existing_ids(self, collection: str, path: str, token: Optional[CancellationToken]) -> Dict[str, Tuple[int, int]]:
        rows = self._retry.call(
            self._store.query,
            collection,
            {"relative_path": path},
            ["id", "start_line", "end_line"],
            self._config.query_limit,
            description=f"query {path}",
            cancel_token=token,
        )
        return {str(r["id"]): (int(r["start_line"]), int(r["end_line"])) for r in rows}

    def _delete_removed(self, run: IndexRun, token: Optional[CancellationToken]) -> None:
        for path in sorted(run.diff.deleted):
            self._check_cancel(run, token)
            try:
                ids = list(self._existing_ids(run.collection, path, token))
                if ids:
                    self._retry.call(
                        self._store.delete, run.collection, ids, description=f"delete {path}", cancel_token=token
                    )
            except ProviderError as e:
                if e.kind != ErrorKind.TRANSIENT:
                    raise
                self._file_failed(run, path, e)
                continue
            run.stats.files_deleted += 1
            logger.debug(f"{INDEX} Removed {len(ids)} chunks of deleted file {path}")

    def _chunk_changed(
        self,
        run: IndexRun,
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> Tuple[Dict[str, _FileWork], List[Chunk]]:
        work: Dict[str, _FileWork] = {}
        pending: List[Chunk] = []
        changed = sorted(run.diff.changed)

        for index, path in enumerate(changed, start=1):
            self._check_cancel(run, token)
            item = _FileWork(path=path, modified=path in run.diff.modified)
            try:
                chunks = self._chunk_file(run.root, path)
                existing: Dict[str, Tuple[int, int]] = {}
                if item.modified:
                    existing = self._existing_ids(run.collection, path, token)
            except PerFileError as e:
                self._file_failed(run, path, e)
                continue
            except ProviderError as e:
                if e.kind != ErrorKind.TRANSIENT:
                    raise
                self._file_failed(run, path, e)
                continue

            item.old_ids = set(existing)
            for chunk in chunks:
                chunk_id = chunk.id
                item.new_ids.add(chunk_id)
                if not run.force and existing.get(chunk_id) == chunk.line_range:
                    run.stats.chunks_reused += 1
                else:
                    pending.append(chunk)
            run.stats.chunks_created += len(chunks)
            work[path] = item
            reporter.report(IndexPhase.CHUNKING, index / len(changed), f"Chunked {path}")

        logger.info(
            f"{INDEX} Chunked {len(work)} files: {run.stats.chunks_created} chunks, "
            f"{len(pending)} to embed, {run.stats.chunks_reused} reused"
        )
        return work, pending

    def _chunk_file(self, root: Path, path: str) -> List[Chunk]:
        try:
            content = (root / path).read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise PerFileError(path, f"not valid UTF-8: {e}") from e
        except OSError as e:
            raise PerFileError(path, f"unreadable: {e}") from e

        try:
            return self._chunker.split(content, language_for_path(path), path)
        except (ValueError, RecursionError) as e:
            raise PerFileError(path, f"chunking failed: {e}") from e

    def _to_documents(self, batch: List[Chunk], vectors: List[List[float]]) -> List[VectorDocument]:
        return [
            VectorDocument(
                id=chunk.id,
                vector=vector,
                content=chunk.content,
                relative_path=chunk.relative_path,
                start_line=chunk.start_line,
                end_line=chunk.end_line,
                file_extension=chunk.file_extension,
                metadata={
                    "language": chunk.language,
                    "sequence_index": chunk.sequence_index,
                    "chunker": self._chunker.chunker_id,
                    "embedding": self._embedder.provider_id,
                },
            )
            for chunk, vector in zip(batch, vectors)
        ]

    def _embed_chunks(self, batch: List[Chunk], token: Optional[CancellationToken]) -> List[List[float]]:
        embeddings = self._retry.call(
            self._embedder.embed_batch,
            [chunk.content for chunk in batch],
            description=f"embed batch of {len(batch)}",
            cancel_token=token,
        )
        if len(embeddings) != len(batch):
            raise EmbeddingError(f"Provider returned {len(embeddings)} vectors for {len(batch)} chunks")
        return [e.vector for e in embeddings]

    def _embed(self, batch: List[Chunk], token: Optional[CancellationToken]) -> _EmbeddedBatch:
        """
        Embed a batch. If the provider rejects a batch that spans several
        files, embed it again file by file so only the offending files fail.
        """
        try:
            return _EmbeddedBatch(chunks=batch, vectors=self._embed_chunks(batch, token))
        except ProviderError as e:
            if e.kind != ErrorKind.PER_FILE or len({chunk.relative_path for chunk in batch}) < 2:
                raise
            logger.info(f"{INDEX} Batch of {len(batch)} chunks rejected ({e}), embedding file by file")

        result = _EmbeddedBatch()
        by_path: Dict[str, List[Chunk]] = {}
        for chunk in batch:
            by_path.setdefault(chunk.relative_path, []).append(chunk)

        for path, group in by_path.items():
            try:
                vectors = self._embed_chunks(group, token)
            except ProviderError as e:
                if e.kind != ErrorKind.PER_FILE:
                    raise
                result.failures[path] = (len(group), e)
                continue
            result.chunks.extend(group)
            result.vectors.extend(vectors)
        return result

    def _upsert(self, collection: str, documents: List[VectorDocument], token: Optional[CancellationToken]) -> None:
        self._retry.call(
            self._store.insert,
            collection,
            documents,
            description=f"upsert {len(documents)} documents",
            cancel_token=token,
        )

    def _embed_and_upsert(
        self,
        run: IndexRun,
        pending: List[Chunk],
        reporter: ProgressReporter,
        token: Optional[CancellationToken],
    ) -> None:
        """
        Embed batches concurrently and upsert each as soon as it is embedded.

        Embedded-but-not-upserted batches count against max_pending_batches,
        so memory stays bounded when the store is slower than the embedder.
        On abort or cancellation no new work starts; in-flight calls finish.
        """
        size = self._config.batch_size
        batches = [pending[i : i + size] for i in range(0, len(pending), size)]
        if not batches:
            return

        total_steps = 2 * len(batches)
        steps = 0
        embeds: Dict[Future, List[Chunk]] = {}
        upserts: Dict[Future, List[Chunk]] = {}
        queue = iter(batches)
        abort: Optional[BaseException] = None
        cancelled = False

        with ThreadPoolExecutor(
            max_workers=self._config.embed_concurrency, thread_name_prefix="vecsync-embed"
        ) as embed_pool, ThreadPoolExecutor(max_workers=1, thread_name_prefix="vecsync-upsert") as upsert_pool:
            exhausted = False
            while True:
                while not exhausted and abort is None and not cancelled:
                    if len(embeds) + len(upserts) >= self._config.max_pending_batches:
                        break
                    if token is not None and token.cancelled:
                        cancelled = True
                        break
                    batch = next(queue, None)
                    if batch is None:
                        exhausted = True
                        break
                    embeds[embed_pool.submit(self._embed, batch, token)] = batch

                if not embeds and not upserts:
                    break

                done, _ = wait(list(embeds) + list(upserts), return_when=FIRST_COMPLETED)
                for future in done:
                    if future in embeds:
                        batch = embeds.pop(future)
                        try:
                            embedded = future.result()
                        except Exception as e:
                            abort = abort or self._batch_failed(run, batch, e, "embedding")
                            continue
                        for path, (count, error) in sorted(embedded.failures.items()):
                            self._chunks_failed(run, path, count, error)
                        run.stats.chunks_embedded += len(embedded.chunks)
                        steps += 1
                        reporter.report(
                            IndexPhase.EMBEDDING, steps / total_steps, f"Embedded {len(embedded.chunks)} chunks"
                        )
                        if not embedded.chunks:
                            steps += 1
                            continue
                        if abort is not None or cancelled:
                            self._batch_skipped(run, embedded.chunks)
                            continue
                        self._transition(run, RunState.UPSERTING)
                        documents = self._to_documents(embedded.chunks, embedded.vectors)
                        upserts[upsert_pool.submit(self._upsert, run.collection, documents, token)] = embedded.chunks
                    else:
                        batch = upserts.pop(future)
                        try:
                            future.result()
                        except Exception as e:
                            abort = abort or self._batch_failed(run, batch, e, "upsert")
                            continue
                        steps += 1
                        reporter.report(IndexPhase.UPSERTING, steps / total_steps, f"Stored {len(batch)} chunks")

                if cancelled or (token is not None and token.cancelled):
                    cancelled = True

        if abort is not None:
            kind = abort.kind if isinstance(abort, ProviderError) else ErrorKind.FATAL
            raise IndexRunError(f"Indexing aborted: {abort}", stats=run.stats, kind=kind, cause=abort) from abort
        if cancelled:
            for batch in queue:
                self._batch_skipped(run, batch)
            raise IndexCancelledError(run.stats)

    def _batch_failed(self, run: IndexRun, batch: List[Chunk], error: Exception, stage: str) -> Optional[BaseException]:
        """Record a failed batch. Returns the error if it must abort the run."""
        run.stats.chunks_failed += len(batch)
        paths = sorted({chunk.relative_path for chunk in batch})
        run.failed_paths.update(paths)

        kind = error.kind if isinstance(error, ProviderError) else ErrorKind.FATAL
        if kind in (ErrorKind.TRANSIENT, ErrorKind.PER_FILE):
            message = f"{stage} failed for {len(batch)} chunks ({', '.join(paths)}): {error}"
            logger.warning(f"{INDEX} {message}")
            run.stats.error_details.append(message)
            return None

        logger.error(f"{INDEX} {stage} failed, aborting run: {error}")
        run.stats.error_details.append(f"Run aborted during {stage}: {error}")
        return error

    def _chunks_failed(self, run: IndexRun, path: str, count: int, error: ProviderError) -> None:
        run.stats.chunks_failed += count
        run.failed_paths.add(path)
        message = f"embedding failed for {count} chunks ({path}): {error}"
        logger.warning(f"{INDEX} {message}")
        run.stats.error_details.append(message)

    def _batch_skipped(self, run: IndexRun, batch: List[Chunk]) -> None:
        run.failed_paths.update(chunk.relative_path for chunk in batch)

    def _file_failed(self, run: IndexRun, path: str, error: Exception) -> None:
        run.failed_paths.add(path)
        run.stats.error_details.append(f"{path}: {error}")
        logger.warning(f"{INDEX} Skipping {path}: {error}")

    def _delete_stale(self, run: IndexRun, work: Dict[str, _FileWork], token: Optional[CancellationToken]) -> None:
        for path, item in sorted(work.items()):
            if not item.modified or path in run.failed_paths:
                continue
            stale = sorted(item.old_ids - item.new_ids)
            if not stale:
                continue
            try:
                self._retry.call(
                    self._store.delete, run.collection, stale, description=f"delete stale {path}", cancel_token=token
                )
            except ProviderError as e:
                if e.kind != ErrorKind.TRANSIENT:
                    raise
                self._file_failed(run, path, e)
                continue
            logger.debug(f"{INDEX} Removed {len(stale)} stale chunks of {path}")


__all__ = ["RunState", "IndexStats", "IndexRun", "IndexOrchestrator"]
