# tests/conftest.py
"""
Shared fixtures: a recording in-memory store, counting / flaky embedders,
tree builders and an orchestrator factory with instant retries.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from vecsync.config.schema import IndexingConfig, ScanConfig
from vecsync.exceptions import ProviderError
from vecsync.ingest.chunking import AstChunker
from vecsync.ingest.diff import FileSynchronizer, IndexOrchestrator
from vecsync.ingest.runtime import RetryPolicy, RunRegistry
from vecsync.ingest.state import SnapshotStore
from vecsync.llm.embedding.base import EmbeddingVector
from vecsync.llm.embedding.plugins.local import LocalEmbedder
from vecsync.vector_db.base import VectorDocument
from vecsync.vector_db.plugins.memory import InMemoryVectorStore

DIM = 16


class RecordingStore(InMemoryVectorStore):
    """InMemoryVectorStore that records writes and can inject failures."""

    def __init__(self, max_collections: Optional[int] = None) -> None:
        super().__init__(max_collections=max_collections)
        self.inserted: List[str] = []
        self.deleted: List[str] = []
        self.delete_calls = 0
        self.insert_errors: List[Exception] = []
        self.delete_errors: List[Exception] = []
        self.on_insert: Optional[Callable[[Sequence[VectorDocument]], None]] = None
        self._record_lock = threading.Lock()

    def insert(self, collection: str, documents: Sequence[VectorDocument]) -> None:
        with self._record_lock:
            error = self.insert_errors.pop(0) if self.insert_errors else None
        if error is not None:
            raise error
        if self.on_insert is not None:
            self.on_insert(documents)
        super().insert(collection, documents)
        with self._record_lock:
            self.inserted.extend(d.id for d in documents)

    def delete(self, collection: str, ids: Sequence[str]) -> None:
        with self._record_lock:
            error = self.delete_errors.pop(0) if self.delete_errors else None
        if error is not None:
            raise error
        super().delete(collection, ids)
        with self._record_lock:
            self.delete_calls += 1
            self.deleted.extend(ids)

    def reset_calls(self) -> None:
        self.inserted.clear()
        self.deleted.clear()
        self.delete_calls = 0

    def paths(self, collection: str) -> set[str]:
        return self.list_file_paths(collection)


class CountingEmbedder:
    """Deterministic embedder that counts texts and can fail on demand."""

    plugin_name: str = "counting"

    def __init__(self, dim: int = DIM) -> None:
        self._inner = LocalEmbedder(dim=dim)
        self.texts: List[str] = []
        self.calls = 0
        self.fail_when: Optional[Callable[[Sequence[str]], Optional[Exception]]] = None
        self._lock = threading.Lock()

    @property
    def provider_id(self) -> str:
        return "counting:test"

    def dimension(self) -> int:
        return self._inner.dim

    def embed(self, text: str) -> EmbeddingVector:
        return self._inner.embed(text)

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        with self._lock:
            self.calls += 1
            error = self.fail_when(texts) if self.fail_when is not None else None
        if error is not None:
            raise error
        with self._lock:
            self.texts.extend(texts)
        return [self._inner.embed(t) for t in texts]

    @property
    def embedded(self) -> int:
        return len(self.texts)

    def reset(self) -> None:
        self.texts.clear()
        self.calls = 0


def fail_times(error_factory: Callable[[], ProviderError], times: int):
    """fail_when hook that raises for the first `times` calls."""
    remaining = [times]

    def hook(texts: Sequence[str]) -> Optional[Exception]:
        if remaining[0] > 0:
            remaining[0] -= 1
            return error_factory()
        return None

    return hook


def write_file(path: Path, text: str) -> None:
    """Write text and move mtime forward so stat-based reuse cannot hide the change."""
    existed = path.exists()
    previous = path.stat().st_mtime_ns if existed else 0
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if existed:
        bumped = max(path.stat().st_mtime_ns, previous + 1_000_000_000)
        os.utime(path, ns=(bumped, bumped))


def make_tree(root: Path, files: Dict[str, str]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for rel, text in files.items():
        write_file(root / rel, text)
    return root


def python_module(name: str, functions: int = 3) -> str:
    """Small Python module with `functions` top-level functions."""
    parts = [f'"""Module {name}."""\n\nimport os\n']
    for i in range(functions):
        parts.append(
            f"\n\ndef {name}_func_{i}(value):\n"
            f"    result = value * {i + 1}\n"
            f"    return os.path.join(str(result), '{name}')\n"
        )
    return "".join(parts)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    return make_tree(
        tmp_path / "repo",
        {
            "a.py": python_module("alpha"),
            "b.py": python_module("beta"),
            "pkg/c.py": python_module("gamma"),
        },
    )


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture
def instant_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial=0.0, maximum=0.0, sleep=lambda seconds: None)


@pytest.fixture
def make_orchestrator(state_dir: Path, store: RecordingStore, embedder: CountingEmbedder, instant_retry: RetryPolicy):
    """Factory so tests can override the config or components."""

    def factory(
        *,
        config: Optional[IndexingConfig] = None,
        scan: Optional[ScanConfig] = None,
        store_override=None,
        embedder_override=None,
        chunker=None,
    ) -> IndexOrchestrator:
        return IndexOrchestrator(
            store=store_override or store,
            embedder=embedder_override or embedder,
            chunker=chunker or AstChunker(max_chunk_size=400, overlap_lines=2),
            synchronizer=FileSynchronizer(SnapshotStore(state_dir), scan or ScanConfig()),
            config=config or IndexingConfig(batch_size=4, embed_concurrency=2, max_pending_batches=2, progress_interval=0),
            retry=instant_retry,
            run_registry=RunRegistry(state_dir),
        )

    return factory


@pytest.fixture
def orchestrator(make_orchestrator) -> IndexOrchestrator:
    return make_orchestrator()
