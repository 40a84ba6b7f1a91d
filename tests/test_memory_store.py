# tests/test_memory_store.py
"""
Tests for the in-memory vector store plugin.

Covers collection management, id-keyed upserts, filtered queries, the three
search modes and alias handling.
"""

import pytest

from vecsync.exceptions import CapacityExceededError, VectorStoreError
from vecsync.vector_db.base import AliasCapable, SearchMode, SearchOptions, VectorDocument, VectorStore
from vecsync.vector_db.plugins.memory import InMemoryVectorStore


def _doc(id_, path, content, vector, start=1):
    return VectorDocument(
        id=id_,
        vector=vector,
        content=content,
        relative_path=path,
        start_line=start,
        end_line=start + 9,
        file_extension="." + path.rsplit(".", 1)[1],
        metadata={"language": "python" if path.endswith(".py") else "go"},
    )


@pytest.fixture
def store():
    s = InMemoryVectorStore()
    s.create_collection("chunks", 3)
    s.insert(
        "chunks",
        [
            _doc("1", "a.py", "def parse_config(path): return load(path)", [1.0, 0.0, 0.0]),
            _doc("2", "a.py", "def write_snapshot(state): pass", [0.0, 1.0, 0.0], start=11),
            _doc("3", "b.go", "func ParseFlags() {}", [0.7, 0.7, 0.0]),
        ],
    )
    return s


def test_satisfies_protocols(store):
    assert isinstance(store, VectorStore)
    assert isinstance(store, AliasCapable)


class TestCollections:
    def test_create_is_idempotent(self, store):
        store.create_collection("chunks", 3)
        assert store.count("chunks") == 3

    def test_drop_missing_is_a_no_op(self, store):
        store.drop_collection("missing")
        assert store.list_collections() == ["chunks"]

    def test_capacity_limit(self):
        store = InMemoryVectorStore(max_collections=1)
        store.create_collection("one", 3)

        with pytest.raises(CapacityExceededError):
            store.create_collection("two", 3)

    def test_unknown_collection(self, store):
        with pytest.raises(VectorStoreError):
            store.count("missing")


class TestDocuments:
    def test_insert_is_an_upsert(self, store):
        store.insert("chunks", [_doc("1", "a.py", "changed", [1.0, 0.0, 0.0])])

        assert store.count("chunks") == 3
        rows = store.query("chunks", {"relative_path": "a.py"}, ["id", "content"])
        assert {"id": "1", "content": "changed"} in rows

    def test_dimension_mismatch(self, store):
        with pytest.raises(VectorStoreError):
            store.insert("chunks", [_doc("9", "c.py", "x", [1.0, 0.0])])

    def test_delete(self, store):
        store.delete("chunks", ["1", "missing"])
        assert store.count("chunks") == 2

    def test_query_filters(self, store):
        assert len(store.query("chunks", None, ["id"])) == 3
        assert store.query("chunks", {"file_extension": ".go"}, ["id"]) == [{"id": "3"}]
        assert len(store.query("chunks", {"id": ["1", "3"]}, ["id"])) == 2
        assert len(store.query("chunks", None, ["id"], limit=2)) == 2

    def test_list_file_paths(self, store):
        assert store.list_file_paths("chunks", batch_size=1) == {"a.py", "b.go"}


class TestSearch:
    def test_vector_search(self, store):
        results = store.search("chunks", [1.0, 0.0, 0.0], SearchOptions(top_k=2))

        assert [r.document.id for r in results] == ["1", "3"]
        assert results[0].score == pytest.approx(1.0)

    def test_text_search(self, store):
        results = store.search(
            "chunks", [], SearchOptions(mode=SearchMode.TEXT, query_text="snapshot state")
        )
        assert [r.document.id for r in results] == ["2"]

    def test_hybrid_search_combines_rankings(self, store):
        results = store.search(
            "chunks",
            [0.0, 1.0, 0.0],
            SearchOptions(mode=SearchMode.HYBRID, query_text="write_snapshot state", top_k=3),
        )
        assert results[0].document.id == "2"

    def test_search_filter(self, store):
        results = store.search(
            "chunks", [1.0, 0.0, 0.0], SearchOptions(filter={"file_extension": ".go"})
        )
        assert [r.document.id for r in results] == ["3"]


class TestAliases:
    def test_alias_resolves_for_reads_and_writes(self, store):
        store.set_alias_target("live", "chunks")

        assert store.get_alias_target("live") == "chunks"
        assert store.count("live") == 3
        assert not store.has_collection("live")

        store.delete("live", ["1"])
        assert store.count("chunks") == 2

    def test_repoint_alias(self, store):
        store.create_collection("chunks_v2", 3)
        store.set_alias_target("live", "chunks")
        store.set_alias_target("live", "chunks_v2")

        assert store.count("live") == 0

    def test_alias_to_missing_collection(self, store):
        with pytest.raises(VectorStoreError):
            store.set_alias_target("live", "missing")

    def test_alias_cannot_shadow_collection(self, store):
        store.create_collection("other", 3)
        with pytest.raises(VectorStoreError):
            store.set_alias_target("other", "chunks")

    def test_dropping_target_removes_alias(self, store):
        store.set_alias_target("live", "chunks")
        store.drop_collection("chunks")

        assert store.get_alias_target("live") is None
