# vecsync/vector_db/plugins/qdrant.py
"""
Qdrant vector store plugin.

Features:
- Native aliases, swapped in a single update_collection_aliases request
- Keyword index on relative_path and a full-text index on content
- Vector, text and hybrid (reciprocal rank fusion) search
- Backend errors mapped onto the vecsync error taxonomy
- Helpful connection errors with fix suggestions
"""

from __future__ import annotations

import math
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, TypeVar

import httpx
from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    CreateAlias,
    CreateAliasOperation,
    DeleteAlias,
    DeleteAliasOperation,
    Distance,
    FieldCondition,
    Filter as QdrantFilter,
    MatchAny,
    MatchText,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    TextIndexParams,
    TextIndexType,
    TokenizerType,
    VectorParams,
)

from vecsync.exceptions import (
    FatalConfigurationError,
    TransientError,
    VectorStoreError,
    classify_status,
)
from vecsync.logging import get_logger
from vecsync.logging.tags import VECTOR_DB
from vecsync.vector_db.base import (
    Filter,
    SearchMode,
    SearchOptions,
    VectorDocument,
    VectorSearchResult,
)

logger = get_logger(__name__)

T = TypeVar("T")

_RRF_K = 60
_SCROLL_PAGE = 256


# =============================================================================
# Helper functions
# =============================================================================


def _point_id(id_: str) -> str:
    """Chunk ids are UUIDs already; anything else is mapped deterministically."""
    try:
        return str(uuid.UUID(id_))
    except ValueError:
        return str(uuid.uuid5(uuid.NAMESPACE_DNS, id_))


def _to_qdrant_filter(filter: Optional[Filter]) -> Optional[QdrantFilter]:
    if not filter:
        return None
    conditions = []
    for key, value in filter.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            conditions.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
        else:
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return QdrantFilter(must=conditions)


def _to_document(payload: Dict[str, Any], vector: Any = None) -> VectorDocument:
    return VectorDocument(
        id=str(payload.get("id", "")),
        vector=list(vector) if isinstance(vector, (list, tuple)) else [],
        content=payload.get("content", ""),
        relative_path=payload.get("relative_path", ""),
        start_line=int(payload.get("start_line", 0)),
        end_line=int(payload.get("end_line", 0)),
        file_extension=payload.get("file_extension", ""),
        metadata=dict(payload.get("metadata") or {}),
    )


def _connection_help(target: str, error: Exception) -> str:
    return f"""
Cannot connect to Qdrant at {target}

Possible fixes:
  1. Start Qdrant: docker run -p 6333:6333 qdrant/qdrant
  2. Check if Qdrant is running: curl {target}/collections
  3. Set the URL and key via environment variables:
       export QDRANT_URL=http://your-host:6333
       export QDRANT_API_KEY=...

Original error: {error}
"""


# =============================================================================
# Qdrant Plugin
# =============================================================================


@dataclass
class QdrantVectorStore:
    """
    Qdrant implementation of the VectorStore and AliasCapable protocols.

    Connection Resolution (in order):
    1. location (e.g. ":memory:" for an embedded, process-local instance)
    2. url kwarg, then QDRANT_URL
    3. host/port kwargs, then QDRANT_HOST / QDRANT_PORT, then localhost:6333

    Usage:
        store = QdrantVectorStore(url="http://localhost:6333")
        store = QdrantVectorStore(location=":memory:")
    """

    plugin_name: str = "qdrant"
    plugin_type: str = "vector_db"

    url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    api_key: Optional[str] = None
    location: Optional[str] = None
    timeout: float = 30.0
    check_connection: bool = True

    _client: Any = field(init=False, repr=False, default=None)
    _target: str = field(init=False, repr=False, default="")

    def __post_init__(self) -> None:
        kwargs: Dict[str, Any] = {}
        if self.location:
            kwargs["location"] = self.location
            self._target = self.location
        else:
            url = self.url or os.getenv("QDRANT_URL")
            if url:
                kwargs["url"] = url
                self._target = url
            else:
                host = self.host or os.getenv("QDRANT_HOST") or "localhost"
                port = self.port or int(os.getenv("QDRANT_PORT") or 6333)
                kwargs.update(host=host, port=port)
                self._target = f"http://{host}:{port}"
            kwargs["timeout"] = max(1, int(math.ceil(self.timeout)))
            api_key = self.api_key or os.getenv("QDRANT_API_KEY")
            if api_key:
                kwargs["api_key"] = api_key

        self._client = QdrantClient(**kwargs)

        if self.check_connection:
            try:
                self._client.get_collections()
            except UnexpectedResponse as e:
                if e.status_code in (401, 403):
                    raise FatalConfigurationError(f"Qdrant rejected credentials at {self._target}: {e}") from e
                raise FatalConfigurationError(_connection_help(self._target, e)) from e
            except (ResponseHandlingException, httpx.HTTPError, OSError) as e:
                raise FatalConfigurationError(_connection_help(self._target, e)) from e
            logger.info(f"{VECTOR_DB} Connected to Qdrant at {self._target}")

    # =========================================================================
    # Error mapping
    # =========================================================================

    def _call(self, op: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except UnexpectedResponse as e:
            detail = e.content.decode("utf-8", "replace") if e.content else (e.reason_phrase or "")
            cls = classify_status(e.status_code, detail, permanent=VectorStoreError)
            raise cls(f"Qdrant {op} failed ({e.status_code}): {detail}") from e
        except (ResponseHandlingException, httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientError(f"Qdrant {op} failed: {e}") from e
        except ValueError as e:
            # Embedded mode reports missing collections this way
            raise VectorStoreError(f"Qdrant {op} failed: {e}") from e

    # =========================================================================
    # Collection Management
    # =========================================================================

    def create_collection(self, name: str, dimension: int) -> None:
        if self.has_collection(name):
            return
        logger.info(f"{VECTOR_DB} Creating Qdrant collection '{name}' with dim={dimension}")
        self._call(
            "create_collection",
            self._client.create_collection,
            collection_name=name,
            vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
        )
        self._call(
            "create_payload_index",
            self._client.create_payload_index,
            collection_name=name,
            field_name="relative_path",
            field_schema=PayloadSchemaType.KEYWORD,
        )
        self._call(
            "create_payload_index",
            self._client.create_payload_index,
            collection_name=name,
            field_name="content",
            field_schema=TextIndexParams(
                type=TextIndexType.TEXT,
                tokenizer=TokenizerType.WORD,
                lowercase=True,
            ),
        )

    def drop_collection(self, name: str) -> None:
        if not self.has_collection(name):
            return
        self._call("delete_collection", self._client.delete_collection, collection_name=name)
        logger.info(f"{VECTOR_DB} Dropped Qdrant collection '{name}'")

    def has_collection(self, name: str) -> bool:
        return name in self.list_collections()

    def list_collections(self) -> List[str]:
        response = self._call("get_collections", self._client.get_collections)
        return sorted(c.name for c in response.collections)

    def count(self, collection: str) -> int:
        response = self._call("count", self._client.count, collection_name=collection, exact=True)
        return int(response.count)

    # =========================================================================
    # Documents
    # =========================================================================

    def insert(self, collection: str, documents: Sequence[VectorDocument]) -> None:
        if not documents:
            return
        points = [
            PointStruct(id=_point_id(doc.id), vector=list(doc.vector), payload=doc.payload())
            for doc in documents
        ]
        self._call("upsert", self._client.upsert, collection_name=collection, points=points, wait=True)
        logger.debug(f"{VECTOR_DB} Upserted {len(points)} points to '{collection}'")

    def delete(self, collection: str, ids: Sequence[str]) -> None:
        if not ids:
            return
        self._call(
            "delete",
            self._client.delete,
            collection_name=collection,
            points_selector=PointIdsList(points=[_point_id(i) for i in ids]),
            wait=True,
        )
        logger.debug(f"{VECTOR_DB} Deleted {len(ids)} points from '{collection}'")

    def _scroll(
        self,
        collection: str,
        scroll_filter: Optional[QdrantFilter],
        with_payload: Any,
        limit: Optional[int],
        page_size: int = _SCROLL_PAGE,
    ) -> List[Any]:
        points: List[Any] = []
        offset = None
        while True:
            size = page_size if limit is None else min(page_size, limit - len(points))
            if size <= 0:
                break
            page, offset = self._call(
                "scroll",
                self._client.scroll,
                collection_name=collection,
                scroll_filter=scroll_filter,
                limit=size,
                offset=offset,
                with_payload=with_payload,
                with_vectors=False,
            )
            points.extend(page)
            if offset is None:
                break
        return points

    def query(
        self,
        collection: str,
        filter: Optional[Filter],
        output_fields: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        points = self._scroll(collection, _to_qdrant_filter(filter), list(output_fields), limit)
        return [{name: (p.payload or {}).get(name) for name in output_fields} for p in points]

    def list_file_paths(self, collection: str, batch_size: int = 1000) -> Set[str]:
        points = self._scroll(collection, None, ["relative_path"], None, page_size=max(1, batch_size))
        return {(p.payload or {}).get("relative_path", "") for p in points}

    # =========================================================================
    # Search
    # =========================================================================

    def _vector_search(self, collection: str, vector: Sequence[float], options: SearchOptions, limit: int) -> List[Any]:
        response = self._call(
            "query_points",
            self._client.query_points,
            collection_name=collection,
            query=list(vector),
            query_filter=_to_qdrant_filter(options.filter),
            limit=limit,
            with_payload=True,
        )
        return list(response.points)

    def _text_search(self, collection: str, options: SearchOptions, limit: int) -> List[Any]:
        if not options.query_text:
            return []
        base = _to_qdrant_filter(options.filter)
        must = list(base.must or []) if base is not None else []
        must.append(FieldCondition(key="content", match=MatchText(text=options.query_text)))
        return self._scroll(collection, QdrantFilter(must=must), True, limit)

    def search(
        self,
        collection: str,
        query_vector: Sequence[float],
        options: SearchOptions,
    ) -> List[VectorSearchResult]:
        if options.mode == SearchMode.VECTOR:
            hits = self._vector_search(collection, query_vector, options, options.top_k)
            return [VectorSearchResult(document=_to_document(h.payload or {}), score=float(h.score)) for h in hits]

        text_hits = self._text_search(collection, options, options.top_k * 4)
        if options.mode == SearchMode.TEXT:
            return [
                VectorSearchResult(document=_to_document(p.payload or {}), score=1.0 / (_RRF_K + rank + 1))
                for rank, p in enumerate(text_hits[: options.top_k])
            ]

        vector_hits = self._vector_search(collection, query_vector, options, options.top_k * 4)
        fused: Dict[str, float] = {}
        payloads: Dict[str, Dict[str, Any]] = {}
        for ranking in (vector_hits, text_hits):
            for rank, point in enumerate(ranking):
                key = str(point.id)
                fused[key] = fused.get(key, 0.0) + 1.0 / (_RRF_K + rank + 1)
                payloads[key] = point.payload or {}
        ranked = sorted(fused.items(), key=lambda item: -item[1])[: options.top_k]
        return [VectorSearchResult(document=_to_document(payloads[k]), score=s) for k, s in ranked]

    # =========================================================================
    # Aliases
    # =========================================================================

    def get_alias_target(self, alias: str) -> Optional[str]:
        response = self._call("get_aliases", self._client.get_aliases)
        for description in response.aliases:
            if description.alias_name == alias:
                return description.collection_name
        return None

    def set_alias_target(self, alias: str, collection: str) -> None:
        """Repoint alias in one request; Qdrant applies the operations atomically."""
        operations: List[Any] = []
        if self.get_alias_target(alias) is not None:
            operations.append(DeleteAliasOperation(delete_alias=DeleteAlias(alias_name=alias)))
        operations.append(
            CreateAliasOperation(create_alias=CreateAlias(collection_name=collection, alias_name=alias))
        )
        self._call(
            "update_collection_aliases",
            self._client.update_collection_aliases,
            change_aliases_operations=operations,
        )
        logger.info(f"{VECTOR_DB} Alias '{alias}' -> '{collection}'")


__all__ = ["QdrantVectorStore"]
