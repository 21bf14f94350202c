"""
Run Recorder - writes consensus outcomes into a run store.

Recording is best-effort: a store failure is logged and reported as
``False`` but never reaches the caller as an exception.
"""

import json

import structlog

from ..models import ConsensusRequest, ConsensusResult, ResultStatus
from .run_store import RunStore

logger = structlog.get_logger()


class RunRecorder:
    """Adapter between the orchestrator and a ``RunStore``."""

    def __init__(self, store: RunStore):
        self.store = store

    async def record_success(
        self,
        run_id: str,
        row_index: int,
        request: ConsensusRequest,
        result: ConsensusResult,
        latency: float,
    ) -> bool:
        """
        Store a successful row.

        Args:
            run_id: Run the row belongs to
            row_index: Position of the row in its run
            request: The request that produced the result
            result: Composed consensus result
            latency: Total latency in seconds

        Returns:
            True if the row was stored
        """
        try:
            await self.store.append_result(
                run_id=run_id,
                row_index=row_index,
                input_data={"content": request.content},
                output=json.dumps(result.to_response()),
                status=ResultStatus.SUCCESS,
                latency=latency,
            )
        except Exception as e:
            logger.warning(
                "run_result_record_failed",
                run_id=run_id,
                row_index=row_index,
                error=str(e),
            )
            return False
        return True

    async def record_failure(
        self,
        run_id: str,
        row_index: int,
        content: str,
        error: BaseException,
    ) -> bool:
        """Store a failed row with the error's class name and message."""
        try:
            await self.store.append_result(
                run_id=run_id,
                row_index=row_index,
                input_data={"content": content},
                output="",
                status=ResultStatus.ERROR,
                latency=0.0,
                error_type=type(error).__name__,
                error_message=str(error),
            )
        except Exception as e:
            logger.warning(
                "run_error_record_failed",
                run_id=run_id,
                row_index=row_index,
                error=str(e),
            )
            return False
        return True
