# vecsync/exceptions.py
"""
Exception hierarchy for vecsync.

The indexing pipeline distinguishes four kinds of failure:

- transient:          network errors, timeouts, rate limits. Retried with backoff.
- per_file:           a single file could not be read or decoded. Skipped.
- capacity_exceeded:  the store refuses new collections. Run aborts.
- fatal:              bad credentials, invalid root, malformed schema. Run aborts.

Adapters raise the ProviderError subclasses; the orchestrator decides what to
do with them and wraps aborts in IndexRunError so callers always get the
partial IndexStats back.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from vecsync.ingest.diff.executor import IndexStats


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PER_FILE = "per_file"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    FATAL = "fatal"
    CANCELLED = "cancelled"


class VecSyncError(Exception):
    """Base class for all vecsync errors."""


class ConfigError(VecSyncError):
    """Configuration could not be loaded or validated."""


class InvalidRootError(VecSyncError):
    """The root directory is missing or unreadable."""


class SnapshotError(VecSyncError):
    """A persisted snapshot is unreadable or has an unsupported format."""


class RunInProgressError(VecSyncError):
    """Another indexing run already holds the lock for this root."""

    def __init__(self, root_dir: str, holder: str = "") -> None:
        self.root_dir = root_dir
        self.holder = holder
        detail = f" (held by {holder})" if holder else ""
        super().__init__(f"An indexing run is already in progress for {root_dir}{detail}")


class PerFileError(VecSyncError):
    """A single file could not be processed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class AliasSwapError(VecSyncError):
    """The store cannot perform the alias swap protocol."""


# =============================================================================
# Adapter errors
# =============================================================================


class ProviderError(VecSyncError):
    """Raised by embedding and vector store adapters."""

    kind: ErrorKind = ErrorKind.FATAL


class TransientError(ProviderError):
    """Network failure, timeout or rate limit. Safe to retry."""

    kind = ErrorKind.TRANSIENT


class FatalConfigurationError(ProviderError):
    """Credentials, endpoint or schema are wrong. Retrying will not help."""

    kind = ErrorKind.FATAL


class CapacityExceededError(ProviderError):
    """The store's collection limit has been reached."""

    kind = ErrorKind.CAPACITY_EXCEEDED


class EmbeddingError(ProviderError):
    """Permanent embedding failure for a specific input."""

    kind = ErrorKind.PER_FILE


class VectorStoreError(ProviderError):
    """Permanent vector store failure."""

    kind = ErrorKind.FATAL


# =============================================================================
# Run errors
# =============================================================================


class IndexRunError(VecSyncError):
    """
    An indexing run stopped before committing its snapshot.

    Attributes:
        stats: Partial IndexStats accumulated before the abort.
        kind: ErrorKind describing why the run stopped.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        stats: "IndexStats",
        kind: ErrorKind,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.stats = stats
        self.kind = kind
        self.cause = cause
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether re-running the whole index is expected to help."""
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.CANCELLED)


class IndexCancelledError(IndexRunError):
    """The run was cancelled by the caller."""

    def __init__(self, stats: "IndexStats") -> None:
        super().__init__("Indexing run cancelled", stats=stats, kind=ErrorKind.CANCELLED)


# =============================================================================
# Classification helpers
# =============================================================================

# Phrases stores use when refusing another collection or the account is out of quota
_CAPACITY_PATTERN = re.compile(
    r"collection limit|too many collections|(?:maximum|max|limit) (?:number of )?collections|quota",
    re.IGNORECASE,
)


def classify_status(
    status_code: Optional[int],
    message: str,
    permanent: type[ProviderError] = ProviderError,
) -> type[ProviderError]:
    """
    Map an HTTP-style failure onto the error taxonomy.

    Args:
        status_code: Response status, or None when no response was received.
        message: Error text from the backend.
        permanent: Class to use for other non-retryable failures.

    Returns:
        The ProviderError subclass the adapter should raise.
    """
    if status_code is None:
        return TransientError
    if status_code in (408, 425, 429) or status_code >= 500:
        return TransientError
    if _CAPACITY_PATTERN.search(message or ""):
        return CapacityExceededError
    if status_code in (401, 403):
        return FatalConfigurationError
    return permanent


__all__ = [
    "ErrorKind",
    "VecSyncError",
    "ConfigError",
    "InvalidRootError",
    "SnapshotError",
    "RunInProgressError",
    "PerFileError",
    "AliasSwapError",
    "ProviderError",
    "TransientError",
    "FatalConfigurationError",
    "CapacityExceededError",
    "EmbeddingError",
    "VectorStoreError",
    "IndexRunError",
    "IndexCancelledError",
    "classify_status",
]
