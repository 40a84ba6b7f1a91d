# vecsync/llm/embedding/plugins/openai.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from vecsync.exceptions import EmbeddingError, FatalConfigurationError, TransientError, classify_status
from vecsync.llm.embedding.base import EmbeddingVector
from vecsync.logging import get_logger
from vecsync.logging.tags import EMBEDDING

logger = get_logger(__name__)

# The embeddings endpoint takes at most 2048 inputs per request
MAX_TEXTS_PER_CALL = 2048

KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


@dataclass
class OpenAIEmbedder:
    """
    OpenAI embeddings via POST /embeddings.

    base_url also points the plugin at any OpenAI-compatible server
    (vLLM, LiteLLM, LM Studio, ...).

    Environment variables:
        OPENAI_API_KEY: API key (required if api_key is not given)
        OPENAI_BASE_URL: Base URL (default: https://api.openai.com/v1)
        OPENAI_EMBED_MODEL: Model name (default: text-embedding-3-small)
    """

    plugin_name: str = "openai"

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    dimensions: Optional[int] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        key = self.api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise FatalConfigurationError("OPENAI_API_KEY is not set")

        self.model = self.model or os.getenv("OPENAI_EMBED_MODEL") or "text-embedding-3-small"
        self.base_url = (self.base_url or os.getenv("OPENAI_BASE_URL") or "https://api.openai.com/v1").rstrip("/")
        self._dimension: Optional[int] = self.dimensions or KNOWN_DIMENSIONS.get(self.model)
        self._client = httpx.Client(base_url=self.base_url, headers=self._headers(key), timeout=self.timeout)

    def _headers(self, key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {key}"}

    def _path(self) -> str:
        return "/embeddings"

    @property
    def provider_id(self) -> str:
        return f"{self.plugin_name}:{self.model}"

    def dimension(self) -> int:
        if self._dimension is None:
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
        payload: Dict[str, Any] = {"model": self.model, "input": texts, "encoding_format": "float"}
        if self.dimensions is not None:
            payload["dimensions"] = self.dimensions

        try:
            response = self._client.post(self._path(), json=payload)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientError(f"{self.plugin_name} embed failed at {self.base_url}: {e}") from e

        if response.status_code == 404:
            raise FatalConfigurationError(f"{self.plugin_name} model {self.model!r} not available: {response.text}")
        if response.status_code >= 400:
            cls = classify_status(response.status_code, response.text, permanent=EmbeddingError)
            raise cls(f"{self.plugin_name} embed failed ({response.status_code}): {response.text}")

        data = sorted(response.json().get("data") or [], key=lambda item: item.get("index", 0))
        if len(data) != len(texts):
            raise EmbeddingError(f"{self.plugin_name} returned {len(data)} embeddings for {len(texts)} texts")
        logger.debug(f"{EMBEDDING} Embedded {len(texts)} texts with {self.model}")
        return [EmbeddingVector([float(x) for x in item["embedding"]]) for item in data]

    def close(self) -> None:
        self._client.close()


@dataclass
class AzureOpenAIEmbedder(OpenAIEmbedder):
    """
    Azure OpenAI embeddings for one deployment.

    Environment variables:
        AZURE_OPENAI_API_KEY: API key (required if api_key is not given)
        AZURE_OPENAI_ENDPOINT: https://<resource>.openai.azure.com
        AZURE_OPENAI_DEPLOYMENT: Deployment name (default: the model name)
    """

    plugin_name: str = "azure_openai"

    deployment: Optional[str] = None
    api_version: str = "2024-02-01"

    def __post_init__(self) -> None:
        key = self.api_key or os.getenv("AZURE_OPENAI_API_KEY")
        endpoint = self.base_url or os.getenv("AZURE_OPENAI_ENDPOINT")
        if not key:
            raise FatalConfigurationError("AZURE_OPENAI_API_KEY is not set")
        if not endpoint:
            raise FatalConfigurationError("AZURE_OPENAI_ENDPOINT is not set")

        self.model = self.model or "text-embedding-3-small"
        self.deployment = self.deployment or os.getenv("AZURE_OPENAI_DEPLOYMENT") or self.model
        self.base_url = endpoint.rstrip("/")
        self._dimension = self.dimensions or KNOWN_DIMENSIONS.get(self.model)
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=self._headers(key),
            params={"api-version": self.api_version},
            timeout=self.timeout,
        )

    def _headers(self, key: str) -> Dict[str, str]:
        return {"api-key": key}

    def _path(self) -> str:
        return f"/openai/deployments/{self.deployment}/embeddings"


__all__ = ["OpenAIEmbedder", "AzureOpenAIEmbedder"]
