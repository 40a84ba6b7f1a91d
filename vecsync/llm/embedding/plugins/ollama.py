# vecsync/llm/embedding/plugins/ollama.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from vecsync.exceptions import EmbeddingError, FatalConfigurationError, TransientError, classify_status
from vecsync.llm.embedding.base import EmbeddingVector
from vecsync.logging import get_logger
from vecsync.logging.tags import EMBEDDING

logger = get_logger(__name__)


@dataclass
class OllamaEmbedder:
    """
    Embeddings from a local Ollama server via POST /api/embed.

    Environment variables:
        OLLAMA_HOST: Base URL (default: http://localhost:11434)
    """

    plugin_name: str = "ollama"

    model: str = "nomic-embed-text"
    base_url: Optional[str] = None
    dimension_hint: Optional[int] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or os.getenv("OLLAMA_HOST") or "http://localhost:11434").rstrip("/")
        self._dimension: Optional[int] = self.dimension_hint
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout)

    @property
    def provider_id(self) -> str:
        return f"ollama:{self.model}"

    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = self.embed("dimension probe").dimension
        return self._dimension

    def embed(self, text: str) -> EmbeddingVector:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        if not texts:
            return []
        try:
            response = self._client.post("/api/embed", json={"model": self.model, "input": list(texts)})
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientError(f"Ollama embed failed at {self.base_url}: {e}") from e

        if response.status_code == 404:
            raise FatalConfigurationError(f"Ollama model {self.model!r} not available: {response.text}")
        if response.status_code >= 400:
            cls = classify_status(response.status_code, response.text, permanent=EmbeddingError)
            raise cls(f"Ollama embed failed ({response.status_code}): {response.text}")

        vectors = response.json().get("embeddings") or []
        if len(vectors) != len(texts):
            raise EmbeddingError(f"Ollama returned {len(vectors)} embeddings for {len(texts)} texts")
        logger.debug(f"{EMBEDDING} Embedded {len(texts)} texts with {self.model}")
        return [EmbeddingVector([float(x) for x in v]) for v in vectors]

    def close(self) -> None:
        self._client.close()


__all__ = ["OllamaEmbedder"]
