# tests/test_alias_swap.py
"""
Tests for vecsync.ingest.alias (AliasSwapCoordinator).

Readers query the alias; the coordinator builds a new collection, repoints
the alias in one call and only then retires the old collection.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import write_file
from vecsync.config.schema import AliasConfig
from vecsync.exceptions import (
    AliasSwapError,
    CapacityExceededError,
    EmbeddingError,
    ErrorKind,
    FatalConfigurationError,
    IndexRunError,
    RunInProgressError,
    TransientError,
)
from vecsync.ingest.alias import AliasSwapCoordinator


class FixedClock:
    def __init__(self, millis: int = 1_700_000_000_000) -> None:
        self.millis = millis

    def __call__(self) -> datetime:
        return datetime.fromtimestamp(self.millis / 1000, tz=timezone.utc)


class NoAliasStore:
    plugin_name = "plain"


class FailingOnce:
    """Wraps a store method so its first `times` calls raise `error`."""

    def __init__(self, fn, error: Exception, times: int = 1) -> None:
        self.fn = fn
        self.error = error
        self.remaining = times
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.remaining > 0:
            self.remaining -= 1
            raise self.error
        return self.fn(*args, **kwargs)


def tree_paths(root: Path) -> set:
    return {p.relative_to(root).as_posix() for p in root.rglob("*.py")}


class MockOrchestrator:
    def __init__(self, store) -> None:
        self.store = store


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def coordinator(orchestrator, sleeps):
    return AliasSwapCoordinator(
        orchestrator,
        AliasConfig(drain_seconds=2.5),
        sleep=sleeps.append,
        clock=FixedClock(),
    )


class TestReindex:
    def test_first_reindex_creates_alias(self, coordinator, orchestrator, store, repo: Path, sleeps):
        result = coordinator.reindex(repo)
        alias = orchestrator.collection_name(repo)

        assert result.alias == alias
        assert result.collection == f"{alias}_1700000000000"
        assert result.previous_collection is None
        assert store.get_alias_target(alias) == result.collection
        assert store.count(alias) == 3
        assert result.stats.files_processed == 3
        assert sleeps == []

    def test_second_reindex_swaps_and_retires_old(self, coordinator, orchestrator, store, repo: Path, sleeps):
        first = coordinator.reindex(repo)
        second = coordinator.reindex(repo)

        assert second.previous_collection == first.collection
        assert second.collection != first.collection
        assert store.get_alias_target(second.alias) == second.collection
        assert not store.has_collection(first.collection)
        assert sleeps == [2.5]

    def test_reindex_embeds_everything_even_with_snapshot(self, coordinator, orchestrator, embedder, repo: Path):
        orchestrator.index_codebase(repo)
        embedder.reset()

        coordinator.reindex(repo, alias="live")

        assert embedder.embedded == 3

    def test_custom_alias(self, coordinator, store, repo: Path):
        result = coordinator.reindex(repo, alias="code_live")
        assert result.alias == "code_live"
        assert store.get_alias_target("code_live") == result.collection

    def test_physical_collection_under_alias_name_is_replaced(self, coordinator, orchestrator, store, repo: Path):
        orchestrator.index_codebase(repo)
        name = orchestrator.collection_name(repo)
        assert store.has_collection(name)

        result = coordinator.reindex(repo)

        assert not store.has_collection(name)
        assert store.get_alias_target(name) == result.collection
        assert result.previous_collection is None

    def test_incremental_run_after_swap_writes_through_alias(self, coordinator, orchestrator, store, embedder, repo: Path):
        result = coordinator.reindex(repo)
        embedder.reset()
        write_file(repo / "d.py", "def delta():\n    return 4\n")

        stats = orchestrator.index_codebase(repo)

        assert stats.files_processed == 1
        assert embedder.embedded == 1
        assert "d.py" in store.paths(result.collection)
        assert store.get_alias_target(result.alias) == result.collection
        assert orchestrator.has_index(repo)

    def test_collection_names_are_unique(self, coordinator, store):
        store.create_collection("live_1700000000000", 16)
        assert coordinator.new_collection_name("live") == "live_1700000000001"


class TestFailure:
    def test_failed_build_leaves_alias_untouched(self, coordinator, orchestrator, store, repo: Path, sleeps):
        first = coordinator.reindex(repo)
        coordinator._clock = FixedClock(1_800_000_000_000)
        store.insert_errors = [CapacityExceededError("quota exceeded")]

        with pytest.raises(IndexRunError):
            coordinator.reindex(repo)

        assert store.get_alias_target(first.alias) == first.collection
        assert store.list_collections() == [first.collection]
        assert store.count(first.alias) == 3
        assert sleeps == []

    def test_failed_build_keeps_snapshot(self, coordinator, orchestrator, embedder, repo: Path):
        coordinator.reindex(repo)
        before = orchestrator.synchronizer.store.load(repo)
        embedder.fail_when = lambda texts: RuntimeError("provider crashed")

        with pytest.raises(IndexRunError):
            coordinator.reindex(repo)

        assert orchestrator.synchronizer.store.load(repo).file_hashes == before.file_hashes

    def test_reindex_rejected_while_run_in_progress(self, coordinator, orchestrator, store, repo: Path):
        with orchestrator.run_lock(repo):
            with pytest.raises(RunInProgressError):
                coordinator.reindex(repo)
        assert store.list_collections() == []

    def test_store_without_alias_support(self):
        with pytest.raises(AliasSwapError):
            AliasSwapCoordinator(MockOrchestrator(NoAliasStore()))

    def test_file_failure_keeps_alias_and_old_collection(self, coordinator, orchestrator, store, embedder, repo: Path, sleeps):
        first = coordinator.reindex(repo)
        before = orchestrator.synchronizer.store.load(repo)
        coordinator._clock = FixedClock(1_800_000_000_000)
        embedder.fail_when = lambda texts: (
            EmbeddingError("input rejected") if any("beta" in t for t in texts) else None
        )

        with pytest.raises(IndexRunError) as info:
            coordinator.reindex(repo)

        assert "b.py" in str(info.value)
        assert info.value.stats.files_failed == 1
        assert store.get_alias_target(first.alias) == first.collection
        assert store.list_collections() == [first.collection]
        assert store.paths(first.alias) == {"a.py", "b.py", "pkg/c.py"}
        assert orchestrator.synchronizer.store.load(repo).file_hashes == before.file_hashes
        assert sleeps == []

    def test_undecodable_file_blocks_first_swap(self, coordinator, orchestrator, store, repo: Path):
        (repo / "bad.py").write_bytes(b"\xff\xfe\x00 not utf-8 \x81")

        with pytest.raises(IndexRunError):
            coordinator.reindex(repo)

        assert store.get_alias_target(orchestrator.collection_name(repo)) is None
        assert store.list_collections() == []
        assert not orchestrator.synchronizer.store.exists(repo)


class TestStoreCalls:
    def test_transient_alias_failure_is_retried(self, coordinator, store, repo: Path, monkeypatch):
        monkeypatch.setattr(store, "set_alias_target", FailingOnce(store.set_alias_target, TransientError("timeout")))

        result = coordinator.reindex(repo)

        assert store.set_alias_target.calls == 2
        assert store.get_alias_target(result.alias) == result.collection

    def test_swap_failure_drops_new_collection(self, coordinator, store, repo: Path, monkeypatch):
        first = coordinator.reindex(repo)
        coordinator._clock = FixedClock(1_800_000_000_000)
        failing = FailingOnce(store.set_alias_target, FatalConfigurationError("forbidden"), times=10)
        monkeypatch.setattr(store, "set_alias_target", failing)

        with pytest.raises(IndexRunError) as info:
            coordinator.reindex(repo)

        assert info.value.kind == ErrorKind.FATAL
        assert failing.calls == 1
        assert store.get_alias_target(first.alias) == first.collection
        assert store.list_collections() == [first.collection]

    def test_transient_drop_of_old_collection_is_retried(self, coordinator, store, repo: Path, monkeypatch):
        first = coordinator.reindex(repo)
        coordinator._clock = FixedClock(1_800_000_000_000)
        monkeypatch.setattr(store, "drop_collection", FailingOnce(store.drop_collection, TransientError("timeout")))

        second = coordinator.reindex(repo)

        assert store.list_collections() == [second.collection]
        assert not store.has_collection(first.collection)

    def test_occupied_by_collection(self, coordinator, orchestrator, store, repo: Path):
        name = orchestrator.collection_name(repo)
        assert not coordinator.occupied_by_collection(name)

        orchestrator.index_codebase(repo)
        assert coordinator.occupied_by_collection(name)

        coordinator.reindex(repo)
        assert not coordinator.occupied_by_collection(name)


class TestAliasContents:
    def test_alias_lists_exactly_the_tree(self, coordinator, store, repo: Path):
        result = coordinator.reindex(repo)
        assert store.list_file_paths(result.alias) == tree_paths(repo)

    def test_alias_follows_tree_across_reindexes(self, coordinator, store, repo: Path):
        coordinator.reindex(repo)
        coordinator._clock = FixedClock(1_800_000_000_000)
        (repo / "a.py").unlink()
        write_file(repo / "pkg/d.py", "def delta():\n    return 4\n")
        write_file(repo / "b.py", "def beta():\n    return 'changed'\n")

        result = coordinator.reindex(repo)

        assert store.list_file_paths(result.alias) == tree_paths(repo) == {"b.py", "pkg/c.py", "pkg/d.py"}
        rows = store.query(result.alias, {"relative_path": "b.py"}, ["content"])
        assert len(rows) == 1
        assert "'changed'" in rows[0]["content"]
