# vecsync/vector_db/plugins/memory.py
"""
In-memory vector store.

Process-local and thread-safe. Useful for tests, dry runs and small
throwaway indexes. Supports aliases and an optional collection limit so
that capacity handling can be exercised without a real backend.
"""

from __future__ import annotations

import math
import re
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Set

from vecsync.exceptions import CapacityExceededError, VectorStoreError
from vecsync.logging import get_logger
from vecsync.logging.tags import VECTOR_DB
from vecsync.vector_db.base import (
    Filter,
    SearchMode,
    SearchOptions,
    VectorDocument,
    VectorSearchResult,
    matches_filter,
)

logger = get_logger(__name__)

_TOKEN = re.compile(r"\w+")
_RRF_K = 60


@dataclass
class _Collection:
    dimension: int
    documents: Dict[str, VectorDocument] = field(default_factory=dict)


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _text_score(query: str, content: str) -> float:
    terms = {t.lower() for t in _TOKEN.findall(query)}
    if not terms:
        return 0.0
    words = [w.lower() for w in _TOKEN.findall(content)]
    return float(sum(1 for w in words if w in terms))


class InMemoryVectorStore:
    """
    Dictionary-backed VectorStore with alias support.

    Usage:
        store = InMemoryVectorStore(max_collections=10)
        store.create_collection("code_chunks_1a2b3c4d", 384)
    """

    plugin_name = "memory"
    plugin_type = "vector_db"

    def __init__(self, max_collections: Optional[int] = None) -> None:
        self.max_collections = max_collections
        self._collections: Dict[str, _Collection] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Collection Management
    # =========================================================================

    def _resolve(self, name: str) -> _Collection:
        target = self._aliases.get(name, name)
        coll = self._collections.get(target)
        if coll is None:
            raise VectorStoreError(f"Collection '{name}' not found")
        return coll

    def create_collection(self, name: str, dimension: int) -> None:
        with self._lock:
            if name in self._collections:
                return
            if name in self._aliases:
                raise VectorStoreError(f"'{name}' is already an alias")
            if self.max_collections is not None and len(self._collections) >= self.max_collections:
                raise CapacityExceededError(
                    f"Collection limit exceeded: {len(self._collections)}/{self.max_collections}"
                )
            self._collections[name] = _Collection(dimension=dimension)
        logger.info(f"{VECTOR_DB} Created collection '{name}' (dim={dimension})")

    def drop_collection(self, name: str) -> None:
        with self._lock:
            if self._collections.pop(name, None) is None:
                return
            for alias, target in list(self._aliases.items()):
                if target == name:
                    del self._aliases[alias]
        logger.info(f"{VECTOR_DB} Dropped collection '{name}'")

    def has_collection(self, name: str) -> bool:
        with self._lock:
            return name in self._collections

    def list_collections(self) -> List[str]:
        with self._lock:
            return sorted(self._collections)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._resolve(collection).documents)

    # =========================================================================
    # Documents
    # =========================================================================

    def insert(self, collection: str, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return
        with self._lock:
            coll = self._resolve(collection)
            for doc in documents:
                if len(doc.vector) != coll.dimension:
                    raise VectorStoreError(
                        f"Vector dimension {len(doc.vector)} does not match "
                        f"collection '{collection}' ({coll.dimension})"
                    )
            for doc in documents:
                coll.documents[doc.id] = replace(doc, vector=list(doc.vector), metadata=dict(doc.metadata))
        logger.debug(f"{VECTOR_DB} Upserted {len(documents)} documents to '{collection}'")

    def delete(self, collection: str, ids: Sequence[str]) -> None:
        with self._lock:
            coll = self._resolve(collection)
            for id_ in ids:
                coll.documents.pop(id_, None)
        logger.debug(f"{VECTOR_DB} Deleted {len(ids)} documents from '{collection}'")

    def query(
        self,
        collection: str,
        filter: Optional[Filter],
        output_fields: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            docs = list(self._resolve(collection).documents.values())

        rows: List[Dict[str, Any]] = []
        for doc in docs:
            payload = doc.payload()
            if not matches_filter(payload, filter):
                continue
            rows.append({name: payload.get(name) for name in output_fields})
            if limit is not None and len(rows) >= limit:
                break
        return rows

    def list_file_paths(self, collection: str, batch_size: int = 1000) -> Set[str]:
        with self._lock:
            docs = sorted(self._resolve(collection).documents.values(), key=lambda d: d.id)

        paths: Set[str] = set()
        for offset in range(0, len(docs), max(1, batch_size)):
            paths.update(doc.relative_path for doc in docs[offset : offset + batch_size])
        return paths

    def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        options: SearchOptions,
    ) -> List[VectorSearchResult]:
        with self._lock:
            docs = [d for d in self._resolve(collection).documents.values() if matches_filter(d.payload(), options.filter)]

        by_vector = sorted(((d, _cosine(query_vector, d.vector)) for d in docs), key=lambda p: -p[1])
        if options.mode == SearchMode.VECTOR:
            ranked = by_vector
        else:
            text = options.query_text or ""
            scored = [(d, _text_score(text, d.content)) for d in docs]
            by_text = sorted((p for p in scored if p[1] > 0), key=lambda p: -p[1])
            if options.mode == SearchMode.TEXT:
                ranked = by_text
            else:
                fused: Dict[str, float] = {}
                lookup: Dict[str, VectorDocument] = {}
                for ranking in (by_vector, by_text):
                    for rank, (doc, _) in enumerate(ranking):
                        fused[doc.id] = fused.get(doc.id, 0.0) + 1.0 / (_RRF_K + rank + 1)
                        lookup[doc.id] = doc
                ranked = sorted(((lookup[i], s) for i, s in fused.items()), key=lambda p: -p[1])

        return [VectorSearchResult(document=doc, score=score) for doc, score in ranked[: options.top_k]]

    # =========================================================================
    # Aliases
    # =========================================================================

    def get_alias_target(self, alias: str) -> Optional[str]:
        with self._lock:
            return self._aliases.get(alias)

    def set_alias_target(self, alias: str, collection: str) -> None:
        with self._lock:
            if collection not in self._collections:
                raise VectorStoreError(f"Cannot alias missing collection '{collection}'")
            if alias in self._collections:
                raise VectorStoreError(f"'{alias}' is a collection, not an alias")
            self._aliases[alias] = collection
        logger.info(f"{VECTOR_DB} Alias '{alias}' -> '{collection}'")


__all__ = ["InMemoryVectorStore"]
