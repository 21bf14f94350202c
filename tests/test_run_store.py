"""Tests for run stores."""

import json

import pytest

from consensus_coder.models import ResultStatus, RunMeta, RunStatus
from consensus_coder.storage import (
    InMemoryRunStore,
    RunNotFoundError,
    RunStoreError,
    SQLiteRunStore,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each test runs against both store implementations."""
    if request.param == "memory":
        return InMemoryRunStore()
    return SQLiteRunStore(tmp_path / "runs.db")


@pytest.fixture
def meta():
    return RunMeta(
        provider="openai",
        model="gpt-4o-mini",
        system_prompt="Synthesize.",
        input_file="tickets.csv",
        input_rows=3,
        max_concurrency=2,
    )


class TestRunLifecycle:
    """Tests for creating, reading and completing runs."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store, meta):
        run_id = await store.create_run(meta)

        run, results = await store.get_run(run_id)

        assert run.id == run_id
        assert run.status == RunStatus.PROCESSING
        assert run.model == "gpt-4o-mini"
        assert run.input_file == "tickets.csv"
        assert run.completed_at is None
        assert results == []

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, store):
        assert await store.get_run("missing") is None

    @pytest.mark.asyncio
    async def test_results_ordered_by_row_index(self, store, meta):
        run_id = await store.create_run(meta)
        for row_index in (2, 0, 1):
            await store.append_result(
                run_id, row_index, {"content": f"row {row_index}"}, "A", ResultStatus.SUCCESS, 1.0
            )

        _, results = await store.get_run(run_id)

        assert [r.row_index for r in results] == [0, 1, 2]
        assert json.loads(results[0].input_json) == {"content": "row 0"}

    @pytest.mark.asyncio
    async def test_error_row_fields(self, store, meta):
        run_id = await store.create_run(meta)

        await store.append_result(
            run_id,
            0,
            {"content": "x"},
            "",
            ResultStatus.ERROR,
            0.0,
            error_type="QuorumError",
            error_message="Not enough workers succeeded (1/3). Errors: boom",
        )

        _, results = await store.get_run(run_id)
        assert results[0].status == ResultStatus.ERROR
        assert results[0].error_type == "QuorumError"
        assert "1/3" in results[0].error_message

    @pytest.mark.asyncio
    async def test_append_to_unknown_run(self, store):
        with pytest.raises(RunNotFoundError) as exc_info:
            await store.append_result("missing", 0, {}, "A", ResultStatus.SUCCESS, 1.0)

        assert isinstance(exc_info.value, RunStoreError)
        assert exc_info.value.run_id == "missing"

    @pytest.mark.asyncio
    async def test_complete_run_stats(self, store, meta):
        run_id = await store.create_run(meta)
        await store.append_result(run_id, 0, {}, "A", ResultStatus.SUCCESS, 1.0)
        await store.append_result(run_id, 1, {}, "B", ResultStatus.SUCCESS, 3.0)
        await store.append_result(run_id, 2, {}, "", ResultStatus.ERROR, 2.0)

        completed = await store.complete_run(run_id)

        assert completed.status == RunStatus.COMPLETED
        assert completed.success_count == 2
        assert completed.error_count == 1
        assert completed.avg_latency == pytest.approx(2.0)
        assert completed.completed_at is not None

        stored, _ = await store.get_run(run_id)
        assert stored.status == RunStatus.COMPLETED
        assert stored.success_count == 2
        assert stored.avg_latency == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_complete_empty_run(self, store, meta):
        run_id = await store.create_run(meta)

        completed = await store.complete_run(run_id)

        assert completed.success_count == 0
        assert completed.avg_latency == 0.0

    @pytest.mark.asyncio
    async def test_complete_unknown_run(self, store):
        with pytest.raises(RunNotFoundError):
            await store.complete_run("missing")

    @pytest.mark.asyncio
    async def test_delete_run(self, store, meta):
        run_id = await store.create_run(meta)
        await store.append_result(run_id, 0, {}, "A", ResultStatus.SUCCESS, 1.0)

        assert await store.delete_run(run_id) is True
        assert await store.get_run(run_id) is None
        assert await store.delete_run(run_id) is False


class TestListRuns:
    """Tests for list_runs."""

    @pytest.mark.asyncio
    async def test_newest_first_with_total(self, store):
        ids = [await store.create_run(RunMeta(input_file=f"f{i}.csv")) for i in range(3)]

        runs, total = await store.list_runs()

        assert total == 3
        assert [r.id for r in runs] == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_pagination(self, store):
        for i in range(5):
            await store.create_run(RunMeta(input_file=f"f{i}.csv"))

        page, total = await store.list_runs(limit=2, offset=2)

        assert total == 5
        assert len(page) == 2

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, store):
        for _ in range(3):
            await store.create_run(RunMeta())

        runs, _ = await store.list_runs(limit=10_000)

        assert len(runs) == 3


class TestSQLitePersistence:
    """Tests specific to the SQLite store."""

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path, meta):
        db_path = tmp_path / "nested" / "runs.db"
        run_id = await SQLiteRunStore(db_path).create_run(meta)

        reopened = SQLiteRunStore(db_path)
        run, _ = await reopened.get_run(run_id)

        assert run.provider == "openai"
        assert run.max_concurrency == 2
