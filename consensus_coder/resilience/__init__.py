"""Retry policy shared by all model calls."""

from .backoff import (
    NON_RETRYABLE_MARKERS,
    BackoffExecutor,
    is_non_retryable,
    with_retry,
)

__all__ = [
    "BackoffExecutor",
    "NON_RETRYABLE_MARKERS",
    "is_non_retryable",
    "with_retry",
]
