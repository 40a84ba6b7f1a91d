# tests/test_orchestrator.py
"""
Tests for vecsync.ingest.diff.executor (IndexOrchestrator).

Key tests verify that:
1. A second run over an unchanged tree makes no embedding calls and no writes
2. Deleted files lose their chunks; modified files lose stale chunks
3. Only changed chunks of a modified file are re-embedded
4. Transient errors are retried; per-file errors skip the file; capacity and
   fatal errors abort without committing the snapshot
5. Cancellation and overlapping runs leave the snapshot untouched
"""

import os
from pathlib import Path

import pytest

from conftest import RecordingStore, fail_times, make_tree, python_module, write_file
from vecsync.config.schema import IndexingConfig
from vecsync.exceptions import (
    CapacityExceededError,
    EmbeddingError,
    ErrorKind,
    FatalConfigurationError,
    IndexCancelledError,
    IndexRunError,
    InvalidRootError,
    RunInProgressError,
    TransientError,
)
from vecsync.ingest.chunking import AstChunker
from vecsync.ingest.progress import IndexPhase
from vecsync.ingest.runtime import CancellationToken, RunRegistry


def _ids_for(store: RecordingStore, collection: str, path: str) -> set:
    return {row["id"] for row in store.query(collection, {"relative_path": path}, ["id"])}


class TestFirstRun:
    def test_indexes_every_file(self, orchestrator, store, embedder, repo: Path):
        stats = orchestrator.index_codebase(repo)
        collection = orchestrator.collection_name(repo)

        assert stats.files_processed == 3
        assert stats.files_failed == 0
        assert stats.chunks_created == stats.chunks_embedded == 3
        assert store.count(collection) == 3
        assert store.paths(collection) == {"a.py", "b.py", "pkg/c.py"}
        assert orchestrator.synchronizer.store.load(repo).paths == {"a.py", "b.py", "pkg/c.py"}

    def test_documents_carry_chunk_metadata(self, orchestrator, store, repo: Path):
        orchestrator.index_codebase(repo)
        rows = store.query(
            orchestrator.collection_name(repo),
            {"relative_path": "a.py"},
            ["start_line", "end_line", "file_extension", "metadata"],
        )

        assert len(rows) == 1
        assert rows[0]["start_line"] == 1
        assert rows[0]["file_extension"] == ".py"
        assert rows[0]["metadata"]["language"] == "python"
        assert rows[0]["metadata"]["chunker"] == "ast:400:2"
        assert rows[0]["metadata"]["embedding"] == "counting:test"
        assert rows[0]["metadata"]["sequence_index"] == 0

    def test_collection_name_is_stable(self, orchestrator, repo: Path):
        name = orchestrator.collection_name(repo)
        assert name == orchestrator.collection_name(str(repo) + "/")
        assert name.startswith("code_chunks_")
        assert len(name.rsplit("_", 1)[1]) == 8

    def test_invalid_root(self, orchestrator, tmp_path: Path):
        with pytest.raises(InvalidRootError):
            orchestrator.index_codebase(tmp_path / "missing")

    def test_batches_bounded_by_batch_size(self, make_orchestrator, embedder, tmp_path: Path):
        root = make_tree(tmp_path / "many", {f"m{i}.py": python_module(f"m{i}") for i in range(10)})
        orchestrator = make_orchestrator()

        stats = orchestrator.index_codebase(root)

        assert stats.chunks_embedded == 10
        assert embedder.calls == 3  # batch_size=4


class TestIncremental:
    def test_second_run_is_a_no_op(self, orchestrator, store, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        store.reset_calls()
        embedder.reset()

        stats = orchestrator.index_codebase(repo)

        assert embedder.calls == 0
        assert store.inserted == []
        assert store.delete_calls == 0
        assert stats.files_processed == 0
        assert stats.chunks_created == 0

    def test_empty_directory(self, orchestrator, store, tmp_path: Path):
        root = tmp_path / "empty"
        root.mkdir()

        stats = orchestrator.index_codebase(root)

        assert stats.files_processed == 0
        assert stats.chunks_created == 0
        snapshot = orchestrator.synchronizer.store.load(root)
        assert snapshot is not None
        assert snapshot.file_hashes == {}

    def test_single_file_then_delete(self, make_orchestrator, store, tmp_path: Path):
        root = make_tree(tmp_path / "one", {"a.py": "".join(f"x_{i} = {i}\n" for i in range(50))})
        orchestrator = make_orchestrator(chunker=AstChunker(max_chunk_size=5000))
        collection = orchestrator.collection_name(root)

        orchestrator.index_codebase(root)
        rows = store.query(collection, None, ["start_line", "end_line"])
        assert rows == [{"start_line": 1, "end_line": 50}]

        (root / "a.py").unlink()
        store.reset_calls()
        stats = orchestrator.index_codebase(root)

        assert stats.files_deleted == 1
        assert store.delete_calls == 1
        assert store.count(collection) == 0
        assert "a.py" not in orchestrator.synchronizer.store.load(root).file_hashes

    def test_modified_line_reembeds_only_its_chunk(self, make_orchestrator, store, embedder, tmp_path: Path):
        lines = [f"value_{i:05d} = {i % 7}\n" for i in range(2000)]
        root = make_tree(tmp_path / "big", {"big.py": "".join(lines)})
        orchestrator = make_orchestrator(chunker=AstChunker(max_chunk_size=8000, overlap_lines=0))
        collection = orchestrator.collection_name(root)

        first = orchestrator.index_codebase(root)
        before = _ids_for(store, collection, "big.py")
        assert first.chunks_created == 4

        lines[999] = "value_00999 = 9\n"
        write_file(root / "big.py", "".join(lines))
        store.reset_calls()
        embedder.reset()

        stats = orchestrator.index_codebase(root)
        after = _ids_for(store, collection, "big.py")

        assert stats.files_processed == 1
        assert stats.chunks_embedded == 1
        assert stats.chunks_reused == 3
        assert embedder.embedded == 1
        assert len(before & after) == 3
        assert len(after) == 4
        assert len(store.deleted) == 1

    def test_shrunk_file_loses_stale_chunks(self, orchestrator, store, repo: Path):
        write_file(repo / "a.py", python_module("alpha", functions=12))
        orchestrator.index_codebase(repo)
        collection = orchestrator.collection_name(repo)
        assert len(_ids_for(store, collection, "a.py")) > 1

        write_file(repo / "a.py", python_module("alpha", functions=1))
        orchestrator.index_codebase(repo)

        assert len(_ids_for(store, collection, "a.py")) == 1

    def test_added_file(self, orchestrator, store, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        embedder.reset()
        write_file(repo / "pkg/d.py", python_module("delta"))

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 1
        assert embedder.embedded == 1
        assert "pkg/d.py" in store.paths(orchestrator.collection_name(repo))

    def test_force_reembeds_without_duplicates(self, orchestrator, store, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        embedder.reset()

        stats = orchestrator.index_codebase(repo, force=True)

        assert stats.chunks_embedded == 3
        assert stats.chunks_reused == 0
        assert embedder.embedded == 3
        assert store.count(orchestrator.collection_name(repo)) == 3

    def test_missing_collection_ignores_snapshot(self, orchestrator, store, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        store.drop_collection(orchestrator.collection_name(repo))
        embedder.reset()

        orchestrator.index_codebase(repo)

        assert embedder.embedded == 3
        assert store.count(orchestrator.collection_name(repo)) == 3

    def test_corrupt_snapshot_triggers_full_reindex(self, orchestrator, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        orchestrator.synchronizer.store.path_for(repo).write_text("{garbage", encoding="utf-8")
        embedder.reset()

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 3
        assert orchestrator.synchronizer.store.load(repo).paths == {"a.py", "b.py", "pkg/c.py"}


class TestStatus:
    def test_has_index_and_clear(self, orchestrator, store, repo: Path):
        assert orchestrator.has_index(repo) is False

        orchestrator.index_codebase(repo)
        assert orchestrator.has_index(repo) is True

        assert orchestrator.clear_index(repo) is True
        assert orchestrator.has_index(repo) is False
        assert not store.has_collection(orchestrator.collection_name(repo))
        assert orchestrator.synchronizer.store.load(repo) is None

    def test_clear_without_index(self, orchestrator, repo: Path):
        assert orchestrator.clear_index(repo) is False

    def test_has_index_false_for_empty_collection(self, orchestrator, tmp_path: Path):
        root = tmp_path / "empty"
        root.mkdir()
        orchestrator.index_codebase(root)
        assert orchestrator.has_index(root) is False


class TestRetriesAndFailures:
    def test_transient_embedding_error_is_retried(self, orchestrator, store, embedder, repo: Path):
        embedder.fail_when = fail_times(lambda: TransientError("429 rate limited"), 1)

        stats = orchestrator.index_codebase(repo)

        assert stats.chunks_failed == 0
        assert stats.files_failed == 0
        assert sorted(store.inserted) == sorted(set(store.inserted))
        assert store.count(orchestrator.collection_name(repo)) == stats.chunks_created

    def test_exhausted_transient_errors_skip_files(self, make_orchestrator, embedder, repo: Path):
        orchestrator = make_orchestrator(
            config=IndexingConfig(batch_size=1, embed_concurrency=2, max_pending_batches=2, progress_interval=0)
        )
        embedder.fail_when = lambda texts: TransientError("timeout")

        stats = orchestrator.index_codebase(repo)

        assert embedder.calls == 9  # 3 batches x 3 attempts
        assert stats.chunks_failed == 3
        assert stats.files_failed == 3
        assert stats.files_processed == 0
        assert orchestrator.synchronizer.store.load(repo).paths == set()

    def test_permanent_embedding_error_skips_only_that_file(self, make_orchestrator, embedder, repo: Path):
        orchestrator = make_orchestrator(
            config=IndexingConfig(batch_size=1, embed_concurrency=2, max_pending_batches=2, progress_interval=0)
        )
        embedder.fail_when = lambda texts: (
            EmbeddingError("input rejected") if any("beta" in t for t in texts) else None
        )

        stats = orchestrator.index_codebase(repo)

        assert stats.chunks_failed == 1
        assert stats.files_failed == 1
        assert stats.files_processed == 2
        assert any("b.py" in detail for detail in stats.error_details)
        assert orchestrator.synchronizer.store.load(repo).paths == {"a.py", "pkg/c.py"}

        embedder.fail_when = None
        embedder.reset()
        orchestrator.index_codebase(repo)
        assert embedder.embedded == 1

    def test_rejected_file_in_mixed_batch_fails_alone(self, orchestrator, store, embedder, repo: Path):
        # batch_size=4 puts chunks of several files in one batch
        embedder.fail_when = lambda texts: (
            EmbeddingError("input rejected") if any("beta" in t for t in texts) else None
        )

        stats = orchestrator.index_codebase(repo)

        collection = orchestrator.collection_name(repo)
        assert stats.files_failed == 1
        assert stats.files_processed == 2
        assert stats.chunks_failed == 1
        assert store.paths(collection) == {"a.py", "pkg/c.py"}
        assert orchestrator.synchronizer.store.load(repo).paths == {"a.py", "pkg/c.py"}
        assert all("b.py" in detail for detail in stats.error_details)

    def test_transient_error_while_isolating_files_fails_the_batch(self, orchestrator, embedder, repo: Path):
        calls = []

        def hook(texts):
            calls.append(len(texts))
            if len(calls) == 1:
                return EmbeddingError("input rejected")
            return TransientError("timeout")

        embedder.fail_when = hook

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 0
        assert stats.chunks_failed == stats.chunks_created
        assert orchestrator.synchronizer.store.load(repo).paths == set()

    def test_undecodable_file_is_skipped(self, orchestrator, repo: Path):
        (repo / "bad.py").write_bytes(b"\xff\xfe\x00 not utf-8 \x81")

        stats = orchestrator.index_codebase(repo)

        assert stats.files_failed == 1
        assert stats.files_processed == 3
        assert any("bad.py" in detail for detail in stats.error_details)
        snapshot = orchestrator.synchronizer.store.load(repo)
        assert "bad.py" not in snapshot.file_hashes

    def test_transient_delete_failure_keeps_fingerprint(self, orchestrator, store, repo: Path):
        orchestrator.index_codebase(repo)
        (repo / "b.py").unlink()
        store.delete_errors = [TransientError("store down")] * 3

        stats = orchestrator.index_codebase(repo)

        assert stats.files_deleted == 0
        assert stats.files_failed == 1
        assert "b.py" in orchestrator.synchronizer.store.load(repo).file_hashes

        stats = orchestrator.index_codebase(repo)
        assert stats.files_deleted == 1
        assert "b.py" not in orchestrator.synchronizer.store.load(repo).file_hashes

    def test_capacity_exceeded_on_create_aborts(self, make_orchestrator, repo: Path):
        orchestrator = make_orchestrator(store_override=RecordingStore(max_collections=0))

        with pytest.raises(IndexRunError) as exc_info:
            orchestrator.index_codebase(repo)

        assert exc_info.value.kind == ErrorKind.CAPACITY_EXCEEDED
        assert not exc_info.value.retryable
        assert orchestrator.synchronizer.store.load(repo) is None

    def test_capacity_exceeded_on_upsert_aborts(self, orchestrator, store, repo: Path):
        store.insert_errors = [CapacityExceededError("Collection limit exceeded")]

        with pytest.raises(IndexRunError) as exc_info:
            orchestrator.index_codebase(repo)

        assert exc_info.value.kind == ErrorKind.CAPACITY_EXCEEDED
        assert exc_info.value.stats.chunks_failed == 3
        assert orchestrator.synchronizer.store.load(repo) is None

    def test_fatal_configuration_error_is_not_retried(self, orchestrator, embedder, repo: Path):
        embedder.fail_when = lambda texts: FatalConfigurationError("401 invalid api key")

        with pytest.raises(IndexRunError) as exc_info:
            orchestrator.index_codebase(repo)

        assert exc_info.value.kind == ErrorKind.FATAL
        assert embedder.calls == 1
        assert orchestrator.synchronizer.store.load(repo) is None

    def test_unexpected_exception_aborts(self, orchestrator, embedder, repo: Path):
        embedder.fail_when = lambda texts: RuntimeError("boom")

        with pytest.raises(IndexRunError) as exc_info:
            orchestrator.index_codebase(repo)

        assert exc_info.value.kind == ErrorKind.FATAL
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_abort_then_rerun_reconciles(self, orchestrator, store, repo: Path):
        store.insert_errors = [CapacityExceededError("quota exceeded")]
        with pytest.raises(IndexRunError):
            orchestrator.index_codebase(repo)

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 3
        assert store.count(orchestrator.collection_name(repo)) == 3


class TestCancellation:
    def test_cancel_before_start(self, orchestrator, embedder, repo: Path):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(IndexCancelledError) as exc_info:
            orchestrator.index_codebase(repo, cancel_token=token)

        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert exc_info.value.retryable
        assert embedder.calls == 0
        assert orchestrator.synchronizer.store.load(repo) is None

    def test_cancel_mid_run_stops_new_batches(self, make_orchestrator, store, embedder, tmp_path: Path):
        root = make_tree(tmp_path / "many", {f"m{i:02d}.py": python_module(f"m{i:02d}") for i in range(12)})
        orchestrator = make_orchestrator()
        token = CancellationToken()
        store.on_insert = lambda documents: token.cancel()

        with pytest.raises(IndexCancelledError):
            orchestrator.index_codebase(root, cancel_token=token)

        assert embedder.calls < 3
        assert orchestrator.synchronizer.store.load(root) is None

        store.on_insert = None
        stats = orchestrator.index_codebase(root)
        assert stats.files_processed == 12
        assert store.count(orchestrator.collection_name(root)) == 12


class TestRunLock:
    def test_overlapping_run_rejected(self, orchestrator, repo: Path):
        with orchestrator.run_lock(repo):
            with pytest.raises(RunInProgressError):
                orchestrator.index_codebase(repo)

        orchestrator.index_codebase(repo)

    def test_lock_held_by_other_process(self, orchestrator, state_dir: Path, repo: Path):
        registry = RunRegistry(state_dir)
        path = registry.lock_path(repo)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(os.getppid()))

        assert registry.is_locked(repo)
        with pytest.raises(RunInProgressError):
            orchestrator.index_codebase(repo)

    def test_stale_lock_from_this_process_is_reclaimed(self, orchestrator, state_dir: Path, repo: Path):
        registry = RunRegistry(state_dir)
        path = registry.lock_path(repo)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(os.getpid()))

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 3
        assert not path.exists()

    def test_lock_released_after_failure(self, orchestrator, embedder, state_dir: Path, repo: Path):
        embedder.fail_when = lambda texts: FatalConfigurationError("bad key")
        with pytest.raises(IndexRunError):
            orchestrator.index_codebase(repo)

        assert not RunRegistry(state_dir).is_locked(repo)


class TestProgress:
    def test_progress_reaches_100_once(self, orchestrator, repo: Path):
        events = []

        orchestrator.index_codebase(repo, on_progress=events.append)

        assert events
        percentages = [e.percentage for e in events]
        assert percentages == sorted(percentages)
        assert percentages.count(100.0) == 1
        assert events[-1].percentage == 100.0
        assert events[-1].phase == IndexPhase.FINALIZING
        assert {e.phase for e in events} >= {IndexPhase.SCANNING, IndexPhase.CHUNKING, IndexPhase.EMBEDDING}

    def test_failing_callback_does_not_break_run(self, orchestrator, repo: Path):
        def explode(event):
            raise ValueError("ui crashed")

        stats = orchestrator.index_codebase(repo, on_progress=explode)
        assert stats.files_processed == 3
