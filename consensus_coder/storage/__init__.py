"""
Run persistence.

Stores runs and their per-row results in memory or in SQLite.
"""

from .recorder import RunRecorder
from .run_store import (
    InMemoryRunStore,
    RunNotFoundError,
    RunStore,
    RunStoreError,
    SQLiteRunStore,
)

__all__ = [
    "RunStore",
    "InMemoryRunStore",
    "SQLiteRunStore",
    "RunStoreError",
    "RunNotFoundError",
    "RunRecorder",
]
