# tests/test_exceptions.py
"""Tests for the error taxonomy and HTTP status classification."""

import pytest

from vecsync.exceptions import (
    CapacityExceededError,
    EmbeddingError,
    ErrorKind,
    FatalConfigurationError,
    IndexCancelledError,
    IndexRunError,
    ProviderError,
    TransientError,
    VectorStoreError,
    classify_status,
)
from vecsync.ingest.diff.executor import IndexStats


@pytest.mark.parametrize(
    "status, message, expected",
    [
        (None, "connection reset", TransientError),
        (429, "rate limited", TransientError),
        (503, "unavailable", TransientError),
        (408, "request timeout", TransientError),
        (401, "invalid api key", FatalConfigurationError),
        (403, "forbidden", FatalConfigurationError),
        (400, "Collection limit exceeded", CapacityExceededError),
        (403, "quota exceeded for project", CapacityExceededError),
        (400, "bad request", ProviderError),
        (400, "Exceeded the limit number of collections", CapacityExceededError),
        (400, "Too many collections", CapacityExceededError),
        (400, "limit must be positive", ProviderError),
        (413, "input exceeds the token limit", ProviderError),
    ],
)
def test_classify_status(status, message, expected):
    assert classify_status(status, message) is expected


def test_classify_status_permanent_override():
    assert classify_status(422, "input too long", permanent=EmbeddingError) is EmbeddingError
    assert classify_status(500, "input too long", permanent=EmbeddingError) is TransientError


def test_error_kinds():
    assert TransientError("x").kind == ErrorKind.TRANSIENT
    assert EmbeddingError("x").kind == ErrorKind.PER_FILE
    assert CapacityExceededError("x").kind == ErrorKind.CAPACITY_EXCEEDED
    assert FatalConfigurationError("x").kind == ErrorKind.FATAL
    assert VectorStoreError("x").kind == ErrorKind.FATAL


def test_run_error_retryable():
    stats = IndexStats()
    assert IndexRunError("x", stats=stats, kind=ErrorKind.TRANSIENT).retryable
    assert not IndexRunError("x", stats=stats, kind=ErrorKind.CAPACITY_EXCEEDED).retryable
    assert not IndexRunError("x", stats=stats, kind=ErrorKind.FATAL).retryable


def test_cancelled_carries_stats():
    stats = IndexStats(files_processed=2)
    error = IndexCancelledError(stats)

    assert isinstance(error, IndexRunError)
    assert error.kind == ErrorKind.CANCELLED
    assert error.retryable
    assert error.stats.files_processed == 2
