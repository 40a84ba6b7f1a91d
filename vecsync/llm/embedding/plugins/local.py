# vecsync/llm/embedding/plugins/local.py
from __future__ import annotations

import re
from dataclasses import dataclass
from hashlib import blake2b
from typing import List, Sequence

from vecsync.llm.embedding.base import EmbeddingVector
from vecsync.logging import get_logger
from vecsync.logging.tags import EMBEDDING

logger = get_logger(__name__)

_TOKEN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*|\d+")
_CAMEL = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass
class LocalEmbedder:
    """
    Deterministic feature-hashing embedder.

    Identifiers are split on underscores and camelCase, lowercased and hashed
    into `dim` signed buckets, then L2-normalized. Texts sharing identifiers
    land close together, which is enough to exercise indexing and search
    without a model or network access.

    It is *not* semantic. Stable across machines and runs.
    """

    plugin_name: str = "local"
    dim: int = 384
    seed: int = 0

    def __post_init__(self) -> None:
        if self.dim < 1:
            raise ValueError(f"dim must be >= 1, got {self.dim}")
        self._logged = False

    @property
    def provider_id(self) -> str:
        return f"local:hash-{self.dim}"

    def dimension(self) -> int:
        return self.dim

    def embed(self, text: str) -> EmbeddingVector:
        return EmbeddingVector(_hash_embed(text or "", dim=self.dim, seed=self.seed))

    def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        if not self._logged:
            logger.info(f"{EMBEDDING} Using local embeddings (baseline quality)")
            self._logged = True
        return [self.embed(t) for t in texts]


def _tokens(text: str) -> List[str]:
    out: List[str] = []
    for token in _TOKEN.findall(text):
        for part in _CAMEL.sub("_", token).split("_"):
            if part:
                out.append(part.lower())
    return out


def _hash_embed(text: str, *, dim: int, seed: int) -> List[float]:
    # Each token picks a bucket and a sign from blake2b(seed + token)
    vec = [0.0] * dim
    for token in _tokens(text):
        digest = blake2b(f"{seed}\n{token}".encode("utf-8"), digest_size=8).digest()
        bucket = int.from_bytes(digest[:4], "little") % dim
        sign = 1.0 if digest[4] & 1 else -1.0
        vec[bucket] += sign

    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        # No tokens: fall back to a fixed unit vector so cosine stays defined
        vec[0] = 1.0
        return vec
    return [x / norm for x in vec]


__all__ = ["LocalEmbedder"]
