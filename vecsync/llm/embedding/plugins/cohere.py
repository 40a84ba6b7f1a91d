# vecsync/llm/embedding/plugins/cohere.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import cohere
import httpx
from cohere.core.api_error import ApiError

from vecsync.exceptions import EmbeddingError, FatalConfigurationError, TransientError, classify_status
from vecsync.llm.embedding.base import EmbeddingVector
from vecsync.logging import get_logger
from vecsync.logging.tags import EMBEDDING

logger = get_logger(__name__)

# Cohere accepts at most 96 texts per embed request
MAX_TEXTS_PER_CALL = 96

KNOWN_DIMENSIONS: Dict[str, int] = {
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "embed-english-light-v3.0": 384,
    "embed-multilingual-light-v3.0": 384,
    "embed-v4.0": 1536,
}


@dataclass
class CohereEmbedder:
    """
    Cohere embedding API plugin.

    Documents are embedded with input_type "search_document"; queries made
    through the CLI search command use the same model so vectors are
    comparable.

    Environment variables:
        COHERE_API_KEY: API key (required if api_key is not given)
        COHERE_EMBED_MODEL: Model name (default: embed-english-v3.0)
    """

    plugin_name: str = "cohere"

    api_key: Optional[str] = None
    model: Optional[str] = None
    input_type: str = "search_document"
    output_dimension: Optional[int] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        key = self.api_key or os.getenv("COHERE_API_KEY")
        if not key:
            raise FatalConfigurationError("COHERE_API_KEY is not set")

        self.model = self.model or os.getenv("COHERE_EMBED_MODEL") or "embed-english-v3.0"
        self._dimension: Optional[int] = self.output_dimension or KNOWN_DIMENSIONS.get(self.model)

        try:
            self._client = cohere.ClientV2(api_key=key, timeout=self.timeout)
        except Exception as e:
            raise FatalConfigurationError("Failed to initialize Cohere embedding client") from e

    @property
    def provider_id(self) -> str:
        return f"cohere:{self.model}"

    def dimension(self) -> int:
        if self._dimension is None:
            # Unknown model: probe once and remember
            self._dimension = self.embed("dimension probe").dimension
        return self._dimension

    def embed(self, text: str) -> EmbeddingVector:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        out: List[EmbeddingVector] = []
        for start in range(0, len(texts), MAX_TEXTS_PER_CALL):
            out.extend(self._embed_call(list(texts[start : start + MAX_TEXTS_PER_CALL])))
        return out

    def _embed_call(self, texts: List[str]) -> List[EmbeddingVector]:
        kwargs: Dict[str, Any] = {
            "texts": texts,
            "model": self.model,
            "input_type": self.input_type,
            "embedding_types": ["float"],
        }
        if self.output_dimension is not None:
            kwargs["output_dimension"] = self.output_dimension

        try:
            res = self._client.embed(**kwargs)
        except ApiError as e:
            cls = classify_status(e.status_code, str(e.body), permanent=EmbeddingError)
            raise cls(f"Cohere embed failed ({e.status_code}): {e.body}") from e
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientError(f"Cohere embed failed: {e}") from e

        vectors = res.embeddings.float or []
        if len(vectors) != len(texts):
            raise EmbeddingError(f"Cohere returned {len(vectors)} embeddings for {len(texts)} texts")
        logger.debug(f"{EMBEDDING} Embedded {len(texts)} texts with {self.model}")
        return [EmbeddingVector(list(v)) for v in vectors]


__all__ = ["CohereEmbedder"]
