# vecsync/llm/embedding/base.py
"""
Embedding provider protocol.

Providers turn text into fixed-dimension vectors. dimension() must not
change for the lifetime of an instance, since collections are created with
it. Failures use the ProviderError hierarchy so the orchestrator can tell
retryable errors from configuration problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class EmbeddingVector:
    vector: List[float]

    @property
    def dimension(self) -> int:
        return len(self.vector)


@runtime_checkable
class EmbeddingProvider(Protocol):
    plugin_name: str

    @property
    def provider_id(self) -> str:
        """Provider and model, e.g. "cohere:embed-english-v3.0"."""
        ...

    def embed(self, text: str) -> EmbeddingVector: ...

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        """Embed texts, returning vectors in input order."""
        ...

    def dimension(self) -> int: ...


__all__ = ["EmbeddingVector", "EmbeddingProvider"]
