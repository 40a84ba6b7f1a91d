# vecsync/ingest/hashing.py
"""
Content fingerprints and deterministic chunk IDs.

File hashes drive change detection; chunk IDs make upserts idempotent, so a
re-run after a crash overwrites the same points instead of duplicating them.
"""

from __future__ import annotations

import hashlib
import uuid
from pathlib import Path

HASH_PREFIX = "sha256:"
_READ_BLOCK = 1024 * 1024

# Fixed namespace: changing it would re-key every stored chunk
CHUNK_ID_NAMESPACE = uuid.UUID("6f1c7d0e-3b9a-5c2e-8f4d-2a7b9e1c0d35")


def hash_bytes(data: bytes) -> str:
    """Return the "sha256:<hex>" digest of a byte string."""
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    """Hash text encoded as UTF-8."""
    return hash_bytes(text.encode("utf-8"))


def hash_file(path: str | Path) -> str:
    """
    Stream a file through SHA-256.

    I/O errors propagate to the caller.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_READ_BLOCK), b""):
            digest.update(block)
    return HASH_PREFIX + digest.hexdigest()


def compute_chunk_id(relative_path: str, sequence_index: int, content: str) -> str:
    """
    Compute a deterministic chunk ID.

    The ID depends on the file path, the chunk's position in the file and
    its content, and is a UUID string so UUID-keyed stores accept it as-is.
    """
    key = f"{relative_path}\x00{sequence_index}\x00{hash_text(content)}"
    return str(uuid.uuid5(CHUNK_ID_NAMESPACE, key))


__all__ = [
    "HASH_PREFIX",
    "CHUNK_ID_NAMESPACE",
    "hash_bytes",
    "hash_text",
    "hash_file",
    "compute_chunk_id",
]
