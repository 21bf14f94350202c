"""
Best-effort enrichment calls made against the judge model.

Neither call may fail a consensus request: every error ends in ``None`` and
a warning log line.
"""

from typing import Optional

import structlog

from ..api import BaseModelClient
from ..config.prompts import DISAGREEMENT_ANALYSIS, QUALITY_SCORING, get_prompt
from ..config.settings import Settings
from ..resilience import BackoffExecutor
from .parsing import Unparsed, parse_quality_scores

logger = structlog.get_logger()


class Enricher:
    """Quality scoring and disagreement explanation."""

    def __init__(self, executor: BackoffExecutor, settings: Settings):
        self.executor = executor
        self.settings = settings

    async def _ask(self, client: BaseModelClient, system_prompt: str, context: str) -> str:
        response = await self.executor.execute(
            lambda: client.call(
                system_prompt,
                context,
                temperature=self.settings.judge_temperature,
                max_tokens=self.settings.max_output_tokens,
            ),
            max_attempts=self.settings.enrichment_max_attempts,
            base_delay=self.settings.retry_base_delay_s,
        )
        return response.content

    async def score_quality(
        self,
        client: BaseModelClient,
        context: str,
        num_workers: int,
    ) -> Optional[list[int]]:
        """
        Ask the judge model for a 1-10 score per worker.

        Returns:
            Scores in worker order, or None if the call or parsing failed
        """
        try:
            text = await self._ask(client, get_prompt(QUALITY_SCORING), context)
        except Exception as e:
            logger.warning("quality_scoring_failed", error=str(e))
            return None

        parsed = parse_quality_scores(text, expected=num_workers)
        if isinstance(parsed, Unparsed):
            logger.warning(
                "quality_scores_unparsed",
                reason=parsed.reason,
                content_preview=parsed.raw_text[:200],
            )
            return None
        return parsed.value

    async def explain_disagreement(
        self,
        client: BaseModelClient,
        context: str,
    ) -> Optional[str]:
        """
        Ask the judge model for one sentence explaining the disagreement.

        Returns:
            The stripped sentence, or None if the call failed or was empty
        """
        try:
            text = await self._ask(client, get_prompt(DISAGREEMENT_ANALYSIS), context)
        except Exception as e:
            logger.warning("disagreement_analysis_failed", error=str(e))
            return None

        reason = text.strip()
        return reason or None
