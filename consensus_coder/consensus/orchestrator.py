"""
Consensus orchestration across independent worker models and one judge.

Workers run concurrently and may fail individually; at least two must
succeed for the request to proceed. Their outputs feed agreement analytics
and then a judge call that synthesizes a single answer.
"""

import asyncio
import math
import time
from enum import Enum
from typing import Any, Optional

import structlog

from ..api import BaseModelClient, ClientFactory, create_client
from ..config.prompts import JUDGE_PRESETS, WORKER_PRESETS, resolve_prompt
from ..config.settings import Settings, get_settings
from ..models import (
    ConsensusRequest,
    ConsensusResult,
    ConsensusType,
    ModelSpec,
    WorkerResult,
)
from ..resilience import BackoffExecutor
from ..storage import RunRecorder
from .agreement import summary_kappa_label
from .enrichment import Enricher
from .strategies import AgreementStrategy, get_agreement_strategy

logger = structlog.get_logger()

MIN_QUORUM = 2
RESPONSE_SEPARATOR = "\n\n---\n\n"


class ConsensusStage(str, Enum):
    """Stages a request moves through."""

    DISPATCHING = "dispatching"
    ANALYZING = "analyzing"
    JUDGING = "judging"
    ENRICHING = "enriching"
    DONE = "done"
    FAILED = "failed"


class ConsensusError(Exception):
    """Base exception for consensus failures."""


class QuorumError(ConsensusError):
    """Raised when fewer than two workers succeed."""

    def __init__(self, succeeded: int, requested: int, errors: list[str]):
        self.succeeded = succeeded
        self.requested = requested
        self.errors = errors
        super().__init__(
            f"Not enough workers succeeded ({succeeded}/{requested}). "
            f"Errors: {'; '.join(errors)}"
        )


class JudgeError(ConsensusError):
    """Raised when the judge call fails after all attempts."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.original_error = original_error
        super().__init__(f"Judge failed: {message}")


def build_judge_context(content: str, worker_results: list[WorkerResult]) -> str:
    """Combine the original content with each worker's labelled output."""
    responses = RESPONSE_SEPARATOR.join(
        f"{result.id} response:\n{result.output}" for result in worker_results
    )
    return f"Original Data: {content}\n\nWorker Responses:\n{responses}"


async def _skipped() -> None:
    return None


class ConsensusOrchestrator:
    """
    Runs one consensus request end to end.

    Flow: dispatch workers -> quorum check -> agreement analytics ->
    judge -> optional enrichment -> optional recording.
    """

    def __init__(
        self,
        client_factory: ClientFactory = create_client,
        executor: BackoffExecutor | None = None,
        agreement: AgreementStrategy | None = None,
        recorder: RunRecorder | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client_factory: Builds a model client from a worker or judge spec
            executor: Retry policy wrapping every model call
            agreement: How worker outputs are compared (settings strategy if None)
            recorder: Stores results when a request carries a run id
            settings: Attempt counts and temperatures (global settings if None)
        """
        self.client_factory = client_factory
        self.executor = executor or BackoffExecutor()
        self.settings = settings or get_settings()
        self.agreement = agreement or get_agreement_strategy(
            self.settings.agreement_strategy
        )
        self.recorder = recorder
        self.enricher = Enricher(self.executor, self.settings)

    async def run_consensus(self, request: ConsensusRequest) -> ConsensusResult:
        """
        Run workers, measure their agreement and synthesize a judged answer.

        Args:
            request: Workers, judge, prompts and content

        Returns:
            ConsensusResult with worker outputs, judge output and analytics

        Raises:
            QuorumError: If fewer than two workers succeed
            JudgeError: If the judge call fails
        """
        log = logger.bind(run_id=request.run_id, row_index=request.row_index)

        # Dispatch
        log.info(
            "consensus_stage",
            stage=ConsensusStage.DISPATCHING.value,
            workers=len(request.workers),
        )
        worker_results = await self._dispatch_workers(request, log)

        # Analyze
        log.info("consensus_stage", stage=ConsensusStage.ANALYZING.value)
        outputs = [result.output.strip() for result in worker_results]
        if all(output == outputs[0] for output in outputs):
            consensus_type = ConsensusType.FULL_AGREEMENT
        else:
            consensus_type = ConsensusType.DISAGREEMENT_SYNTHESIZED

        kappa = self.agreement.pair_kappa(outputs[0], outputs[1])
        agreement_matrix = self.agreement.matrix(outputs)

        # Judge
        log.info("consensus_stage", stage=ConsensusStage.JUDGING.value)
        context = build_judge_context(request.content, worker_results)
        judge_client, judge_output, judge_latency = await self._run_judge(
            request, context, log
        )
        total_latency = judge_latency + max(r.latency for r in worker_results)

        # Enrich
        quality_scores, disagreement_reason = await self._enrich(
            request, judge_client, context, consensus_type, len(worker_results), log
        )

        reported_kappa = None if math.isnan(kappa) else kappa
        result = ConsensusResult(
            worker_results=worker_results,
            judge_output=judge_output,
            judge_latency=judge_latency,
            total_latency=total_latency,
            consensus_type=consensus_type,
            kappa=reported_kappa,
            kappa_label=summary_kappa_label(reported_kappa),
            agreement_matrix=agreement_matrix,
            quality_scores=quality_scores,
            disagreement_reason=disagreement_reason,
        )

        if request.run_id and self.recorder is not None:
            await self.recorder.record_success(
                request.run_id, request.row_index, request, result, total_latency
            )

        log.info(
            "consensus_stage",
            stage=ConsensusStage.DONE.value,
            consensus_type=consensus_type.value,
            kappa=reported_kappa,
            total_latency=round(total_latency, 3),
        )
        return result

    async def _dispatch_workers(
        self,
        request: ConsensusRequest,
        log: Any,
    ) -> list[WorkerResult]:
        system_prompt = resolve_prompt(
            request.worker_prompt, WORKER_PRESETS[self.settings.worker_prompt_preset]
        )
        outcomes = await asyncio.gather(
            *(
                self._run_worker(f"worker_{i + 1}", spec, system_prompt, request.content)
                for i, spec in enumerate(request.workers)
            ),
            return_exceptions=True,
        )

        worker_results: list[WorkerResult] = []
        errors: list[str] = []
        for spec, outcome in zip(request.workers, outcomes):
            if isinstance(outcome, WorkerResult):
                worker_results.append(outcome)
            elif isinstance(outcome, Exception):
                errors.append(str(outcome))
                log.warning(
                    "worker_failed",
                    provider=spec.provider,
                    model=spec.model,
                    error=str(outcome),
                )
            else:
                # Cancellation and interpreter exits are not worker failures
                raise outcome

        if len(worker_results) < MIN_QUORUM:
            error = QuorumError(len(worker_results), len(request.workers), errors)
            log.error(
                "consensus_stage",
                stage=ConsensusStage.FAILED.value,
                succeeded=error.succeeded,
                requested=error.requested,
                error=str(error),
            )
            raise error

        return worker_results

    async def _run_worker(
        self,
        worker_id: str,
        spec: ModelSpec,
        system_prompt: str,
        content: str,
    ) -> WorkerResult:
        # Built outside the executor: a bad spec fails once, not per attempt
        client = self.client_factory(spec)

        start_time = time.perf_counter()
        response = await self.executor.execute(
            lambda: client.call(
                system_prompt,
                content,
                temperature=self.settings.worker_temperature,
                max_tokens=self.settings.max_output_tokens,
            ),
            max_attempts=self.settings.worker_max_attempts,
            base_delay=self.settings.retry_base_delay_s,
        )
        latency = time.perf_counter() - start_time

        return WorkerResult(id=worker_id, output=response.content, latency=latency)

    async def _run_judge(
        self,
        request: ConsensusRequest,
        context: str,
        log: Any,
    ) -> tuple[BaseModelClient, str, float]:
        system_prompt = resolve_prompt(
            request.judge_prompt, JUDGE_PRESETS[self.settings.judge_prompt_preset]
        )
        try:
            client = self.client_factory(request.judge)
            start_time = time.perf_counter()
            response = await self.executor.execute(
                lambda: client.call(
                    system_prompt,
                    context,
                    temperature=self.settings.judge_temperature,
                    max_tokens=self.settings.max_output_tokens,
                ),
                max_attempts=self.settings.judge_max_attempts,
                base_delay=self.settings.retry_base_delay_s,
            )
        except Exception as e:
            log.error(
                "consensus_stage",
                stage=ConsensusStage.FAILED.value,
                provider=request.judge.provider,
                model=request.judge.model,
                error=str(e),
            )
            raise JudgeError(str(e), e) from e

        return client, response.content, time.perf_counter() - start_time

    async def _enrich(
        self,
        request: ConsensusRequest,
        judge_client: BaseModelClient,
        context: str,
        consensus_type: ConsensusType,
        num_workers: int,
        log: Any,
    ) -> tuple[Optional[list[int]], Optional[str]]:
        score = request.enable_quality_scoring
        explain = (
            request.enable_disagreement_analysis
            and consensus_type is not ConsensusType.FULL_AGREEMENT
        )
        if not (score or explain):
            return None, None

        log.info(
            "consensus_stage",
            stage=ConsensusStage.ENRICHING.value,
            quality_scoring=score,
            disagreement_analysis=explain,
        )
        quality_scores, disagreement_reason = await asyncio.gather(
            self.enricher.score_quality(judge_client, context, num_workers)
            if score
            else _skipped(),
            self.enricher.explain_disagreement(judge_client, context)
            if explain
            else _skipped(),
        )
        return quality_scores, disagreement_reason


async def run_consensus(request: ConsensusRequest, **kwargs) -> ConsensusResult:
    """
    Run a single consensus request with a fresh orchestrator.

    Keyword arguments are passed to ``ConsensusOrchestrator``.
    """
    return await ConsensusOrchestrator(**kwargs).run_consensus(request)
