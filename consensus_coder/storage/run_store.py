"""
Run Store - durable record of runs and their per-row results.
"""

import asyncio
import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..models import (
    ResultStatus,
    RunMeta,
    RunRecord,
    RunResultRecord,
    RunStatus,
)

MAX_LIST_LIMIT = 200


class RunStoreError(Exception):
    """Base exception for run store failures."""


class RunNotFoundError(RunStoreError):
    """Raised when a run id is unknown to the store."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


def _completion_stats(results: list[RunResultRecord]) -> dict[str, Any]:
    errors = sum(1 for r in results if r.status == ResultStatus.ERROR)
    return {
        "status": RunStatus.COMPLETED,
        "completed_at": datetime.now(timezone.utc),
        "success_count": len(results) - errors,
        "error_count": errors,
        "avg_latency": sum(r.latency for r in results) / len(results) if results else 0.0,
    }


class RunStore(ABC):
    """Abstract async interface for run persistence."""

    @abstractmethod
    async def create_run(self, meta: RunMeta) -> str:
        """Create a run in ``processing`` state and return its id."""
        pass

    @abstractmethod
    async def append_result(
        self,
        run_id: str,
        row_index: int,
        input_data: dict[str, Any],
        output: str,
        status: ResultStatus,
        latency: float,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> RunResultRecord:
        """
        Store one row of a run.

        Raises:
            RunNotFoundError: If the run does not exist
        """
        pass

    @abstractmethod
    async def get_run(
        self, run_id: str
    ) -> Optional[tuple[RunRecord, list[RunResultRecord]]]:
        """Return a run and its results ordered by row index, or None."""
        pass

    @abstractmethod
    async def list_runs(
        self, limit: int = 50, offset: int = 0
    ) -> tuple[list[RunRecord], int]:
        """Return a page of runs (newest first) and the total run count."""
        pass

    @abstractmethod
    async def complete_run(self, run_id: str) -> RunRecord:
        """
        Mark a run completed and compute its success/error counts and latency.

        Raises:
            RunNotFoundError: If the run does not exist
        """
        pass

    @abstractmethod
    async def delete_run(self, run_id: str) -> bool:
        """Delete a run and its results; False if it did not exist."""
        pass


class InMemoryRunStore(RunStore):
    """Process-local store, used by tests and one-off CLI runs."""

    def __init__(self):
        self._runs: dict[str, RunRecord] = {}
        self._results: dict[str, list[RunResultRecord]] = {}

    async def create_run(self, meta: RunMeta) -> str:
        run = RunRecord(**meta.model_dump())
        self._runs[run.id] = run
        self._results[run.id] = []
        return run.id

    async def append_result(
        self,
        run_id: str,
        row_index: int,
        input_data: dict[str, Any],
        output: str,
        status: ResultStatus,
        latency: float,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> RunResultRecord:
        if run_id not in self._runs:
            raise RunNotFoundError(run_id)
        record = RunResultRecord(
            run_id=run_id,
            row_index=row_index,
            input_json=json.dumps(input_data),
            output=output,
            status=status,
            latency=latency,
            error_type=error_type,
            error_message=error_message,
        )
        self._results[run_id].append(record)
        return record

    async def get_run(
        self, run_id: str
    ) -> Optional[tuple[RunRecord, list[RunResultRecord]]]:
        run = self._runs.get(run_id)
        if run is None:
            return None
        results = sorted(self._results[run_id], key=lambda r: r.row_index)
        return run, results

    async def list_runs(
        self, limit: int = 50, offset: int = 0
    ) -> tuple[list[RunRecord], int]:
        limit = min(limit, MAX_LIST_LIMIT)
        # Reversed insertion order breaks timestamp ties newest first
        runs = sorted(
            reversed(list(self._runs.values())), key=lambda r: r.started_at, reverse=True
        )
        return runs[offset : offset + limit], len(runs)

    async def complete_run(self, run_id: str) -> RunRecord:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        completed = run.model_copy(update=_completion_stats(self._results[run_id]))
        self._runs[run_id] = completed
        return completed

    async def delete_run(self, run_id: str) -> bool:
        self._results.pop(run_id, None)
        return self._runs.pop(run_id, None) is not None


class SQLiteRunStore(RunStore):
    """
    SQLite-backed run store.

    Each operation opens its own connection and runs in a worker thread, so
    the store is safe to share between concurrent requests.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_conn(self):
        """Get database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS runs (
                    id TEXT PRIMARY KEY,
                    run_type TEXT,
                    provider TEXT,
                    model TEXT,
                    temperature REAL,
                    max_tokens INTEGER,
                    system_prompt TEXT,
                    input_file TEXT,
                    input_rows INTEGER,
                    max_concurrency INTEGER,
                    status TEXT,
                    started_at TEXT,
                    completed_at TEXT,
                    success_count INTEGER DEFAULT 0,
                    error_count INTEGER DEFAULT 0,
                    avg_latency REAL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS run_results (
                    id TEXT PRIMARY KEY,
                    run_id TEXT REFERENCES runs(id),
                    row_index INTEGER,
                    input_json TEXT,
                    output TEXT,
                    status TEXT,
                    latency REAL,
                    error_type TEXT,
                    error_message TEXT,
                    created_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_run_results_run ON run_results(run_id, row_index);
                CREATE INDEX IF NOT EXISTS idx_runs_started ON runs(started_at);
            """)

    @staticmethod
    def _run_from_row(row: sqlite3.Row) -> RunRecord:
        return RunRecord.model_validate(dict(row))

    @staticmethod
    def _result_from_row(row: sqlite3.Row) -> RunResultRecord:
        return RunResultRecord.model_validate(dict(row))

    def _run_exists(self, conn: sqlite3.Connection, run_id: str) -> bool:
        row = conn.execute("SELECT 1 FROM runs WHERE id = ?", (run_id,)).fetchone()
        return row is not None

    # Synchronous implementations, run via asyncio.to_thread

    def _create_run(self, meta: RunMeta) -> str:
        run = RunRecord(**meta.model_dump())
        data = run.model_dump(mode="json")
        # Fixed-width timestamps keep ORDER BY started_at chronological
        data["started_at"] = run.started_at.isoformat(timespec="microseconds")
        columns = ", ".join(data.keys())
        placeholders = ", ".join("?" * len(data))
        with self._get_conn() as conn:
            conn.execute(
                f"INSERT INTO runs ({columns}) VALUES ({placeholders})",
                list(data.values()),
            )
        return run.id

    def _append_result(self, record: RunResultRecord) -> RunResultRecord:
        data = record.model_dump(mode="json")
        columns = ", ".join(data.keys())
        placeholders = ", ".join("?" * len(data))
        with self._get_conn() as conn:
            if not self._run_exists(conn, record.run_id):
                raise RunNotFoundError(record.run_id)
            conn.execute(
                f"INSERT INTO run_results ({columns}) VALUES ({placeholders})",
                list(data.values()),
            )
        return record

    def _get_run(self, run_id: str) -> Optional[tuple[RunRecord, list[RunResultRecord]]]:
        with self._get_conn() as conn:
            run_row = conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,)).fetchone()
            if run_row is None:
                return None
            result_rows = conn.execute(
                "SELECT * FROM run_results WHERE run_id = ? ORDER BY row_index ASC",
                (run_id,),
            ).fetchall()
        return self._run_from_row(run_row), [self._result_from_row(r) for r in result_rows]

    def _list_runs(self, limit: int, offset: int) -> tuple[list[RunRecord], int]:
        limit = min(limit, MAX_LIST_LIMIT)
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM runs ORDER BY started_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            total = conn.execute("SELECT COUNT(*) AS total FROM runs").fetchone()["total"]
        return [self._run_from_row(r) for r in rows], total

    def _complete_run(self, run_id: str) -> RunRecord:
        found = self._get_run(run_id)
        if found is None:
            raise RunNotFoundError(run_id)
        run, results = found
        completed = run.model_copy(update=_completion_stats(results))
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE runs SET status = ?, completed_at = ?, success_count = ?, "
                "error_count = ?, avg_latency = ? WHERE id = ?",
                (
                    completed.status.value,
                    completed.completed_at.isoformat(timespec="microseconds"),
                    completed.success_count,
                    completed.error_count,
                    completed.avg_latency,
                    run_id,
                ),
            )
        return completed

    def _delete_run(self, run_id: str) -> bool:
        with self._get_conn() as conn:
            conn.execute("DELETE FROM run_results WHERE run_id = ?", (run_id,))
            cursor = conn.execute("DELETE FROM runs WHERE id = ?", (run_id,))
            return cursor.rowcount > 0

    # Async interface

    async def create_run(self, meta: RunMeta) -> str:
        return await asyncio.to_thread(self._create_run, meta)

    async def append_result(
        self,
        run_id: str,
        row_index: int,
        input_data: dict[str, Any],
        output: str,
        status: ResultStatus,
        latency: float,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> RunResultRecord:
        record = RunResultRecord(
            run_id=run_id,
            row_index=row_index,
            input_json=json.dumps(input_data),
            output=output,
            status=status,
            latency=latency,
            error_type=error_type,
            error_message=error_message,
        )
        return await asyncio.to_thread(self._append_result, record)

    async def get_run(
        self, run_id: str
    ) -> Optional[tuple[RunRecord, list[RunResultRecord]]]:
        return await asyncio.to_thread(self._get_run, run_id)

    async def list_runs(
        self, limit: int = 50, offset: int = 0
    ) -> tuple[list[RunRecord], int]:
        return await asyncio.to_thread(self._list_runs, limit, offset)

    async def complete_run(self, run_id: str) -> RunRecord:
        return await asyncio.to_thread(self._complete_run, run_id)

    async def delete_run(self, run_id: str) -> bool:
        return await asyncio.to_thread(self._delete_run, run_id)
