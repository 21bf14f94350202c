"""
Batch runner: one consensus request per input row under a shared run.

Concurrency is capped with a semaphore so a large batch does not exceed
provider rate limits. A failed row is recorded and the batch continues.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from .config.settings import settings
from .consensus.orchestrator import ConsensusError, ConsensusOrchestrator
from .models import ConsensusRequest, ConsensusResult, RunMeta
from .storage import RunRecorder, RunStore

logger = structlog.get_logger()


@dataclass
class BatchRowOutcome:
    """Result or error for one row."""

    row_index: int
    result: Optional[ConsensusResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class BatchReport:
    """Outcomes of a batch in row order."""

    run_id: str
    outcomes: list[BatchRowOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded


def default_run_meta(
    template: ConsensusRequest, input_rows: int, max_concurrency: int
) -> RunMeta:
    """Run metadata describing a consensus batch by its judge."""
    return RunMeta(
        run_type="consensus",
        provider=template.judge.provider,
        model=template.judge.model,
        temperature=settings.judge_temperature,
        max_tokens=settings.max_output_tokens,
        system_prompt=template.judge_prompt,
        input_rows=input_rows,
        max_concurrency=max_concurrency,
    )


async def run_batch(
    orchestrator: ConsensusOrchestrator,
    template: ConsensusRequest,
    contents: Sequence[str],
    store: RunStore,
    max_concurrency: int | None = None,
    meta: RunMeta | None = None,
) -> BatchReport:
    """
    Run ``template`` once per content item and record every row.

    Successful rows are recorded by the orchestrator's recorder, or into
    ``store`` when the orchestrator has none.

    Args:
        orchestrator: Orchestrator used for every row
        template: Request whose workers, judge and prompts are reused
        contents: One content string per row
        store: Store holding the run
        max_concurrency: Rows in flight at once (settings default if None)
        meta: Run metadata (derived from the template if None)

    Returns:
        BatchReport with one outcome per row, in input order
    """
    limit = settings.batch_max_concurrency if max_concurrency is None else max_concurrency
    if limit < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {limit}")

    run_id = template.run_id
    if run_id is None:
        run_id = await store.create_run(
            meta or default_run_meta(template, len(contents), limit)
        )

    recorder = RunRecorder(store)
    record_successes = orchestrator.recorder is None
    semaphore = asyncio.Semaphore(limit)
    log = logger.bind(run_id=run_id)

    async def process_row(row_index: int, content: str) -> BatchRowOutcome:
        request = template.model_copy(
            update={"content": content, "run_id": run_id, "row_index": row_index}
        )
        async with semaphore:
            try:
                result = await orchestrator.run_consensus(request)
            except ConsensusError as e:
                log.warning("batch_row_failed", row_index=row_index, error=str(e))
                await recorder.record_failure(run_id, row_index, content, e)
                return BatchRowOutcome(row_index=row_index, error=str(e))
            except Exception as e:
                log.error(
                    "batch_row_crashed", row_index=row_index, error=str(e), exc_info=True
                )
                await recorder.record_failure(run_id, row_index, content, e)
                return BatchRowOutcome(row_index=row_index, error=str(e))

        if record_successes:
            await recorder.record_success(
                run_id, row_index, request, result, result.total_latency
            )
        return BatchRowOutcome(row_index=row_index, result=result)

    log.info("batch_started", rows=len(contents), max_concurrency=limit)
    outcomes = await asyncio.gather(
        *(process_row(i, content) for i, content in enumerate(contents))
    )
    report = BatchReport(run_id=run_id, outcomes=list(outcomes))

    try:
        await store.complete_run(run_id)
    except Exception as e:
        log.warning("run_complete_failed", error=str(e))

    log.info("batch_completed", succeeded=report.succeeded, failed=report.failed)
    return report
