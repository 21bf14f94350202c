"""
Data models for the consensus pipeline.

Every model accepts both snake_case field names and the camelCase aliases used
at the JSON boundary (``apiKey``, ``workerResults``, ...).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BoundaryModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> dict[str, Any]:
        """Dump to the boundary JSON shape, dropping omitted optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ===========================================
# Enums
# ===========================================


class ConsensusType(str, Enum):
    """Whether the workers' trimmed outputs were identical."""

    FULL_AGREEMENT = "FullAgreement"
    DISAGREEMENT_SYNTHESIZED = "DisagreementSynthesized"

    @property
    def display_name(self) -> str:
        """Human-readable label shown next to a consensus result."""
        if self is ConsensusType.FULL_AGREEMENT:
            return "Full Agreement"
        return "Disagreement (Synthesized)"


class RunStatus(str, Enum):
    """Lifecycle of a stored run."""

    PROCESSING = "processing"
    COMPLETED = "completed"


class ResultStatus(str, Enum):
    """Outcome of one recorded row."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


# ===========================================
# Request Models
# ===========================================


class ModelSpec(BoundaryModel):
    """Provider, model and credential for one model call site."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    provider: str = Field(..., min_length=1, description="Provider id, e.g. openai")
    model: str = Field(..., min_length=1, description="Model id at the provider")
    api_key: str = Field(default="", repr=False, description="Provider credential")
    base_url: Optional[str] = Field(default=None, description="Endpoint override")


class WorkerSpec(ModelSpec):
    """One independently configured worker."""


class JudgeSpec(ModelSpec):
    """The model that synthesizes worker outputs."""


class ConsensusRequest(BoundaryModel):
    """Input to one consensus invocation."""

    workers: list[WorkerSpec] = Field(..., min_length=2)
    judge: JudgeSpec
    worker_prompt: str = ""
    judge_prompt: str = ""
    content: str
    enable_quality_scoring: bool = False
    enable_disagreement_analysis: bool = False
    run_id: Optional[str] = None
    row_index: int = Field(default=0, ge=0)


# ===========================================
# Result Models
# ===========================================


class WorkerResult(BoundaryModel):
    """A successful worker call."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    output: str
    latency: float = Field(..., ge=0.0, description="Seconds, including retries")


class AgreementMatrix(BoundaryModel):
    """All-pairs agreement among workers."""

    labels: list[str] = Field(default_factory=list)
    values: list[list[float]] = Field(default_factory=list)
    pair_labels: list[str] = Field(default_factory=list)
    pair_agreements: list[float] = Field(default_factory=list)


class ConsensusResult(BoundaryModel):
    """Composed output of a consensus invocation."""

    worker_results: list[WorkerResult]
    judge_output: str
    judge_latency: float
    total_latency: float
    consensus_type: ConsensusType
    kappa: Optional[float] = None
    kappa_label: str = "N/A"
    agreement_matrix: AgreementMatrix
    quality_scores: Optional[list[int]] = None
    disagreement_reason: Optional[str] = None

    def to_response(self) -> dict[str, Any]:
        """Boundary JSON; ``kappa`` stays as null, enrichment fields are omitted."""
        data = self.model_dump(mode="json", by_alias=True)
        for key in ("qualityScores", "disagreementReason"):
            if data[key] is None:
                del data[key]
        return data


# ===========================================
# API Response Models
# ===========================================


class ChatResponse(BaseModel):
    """Response from an LLM API call."""

    content: str
    model: str
    usage: dict[str, int] = Field(default_factory=dict)
    latency_ms: float = Field(default=0.0)

    @property
    def latency_seconds(self) -> float:
        return self.latency_ms / 1000


# ===========================================
# Run Store Models
# ===========================================


class RunMeta(BoundaryModel):
    """Metadata supplied when a run is created."""

    run_type: str = "consensus"
    provider: str = "unknown"
    model: str = "unknown"
    temperature: float = 0.0
    max_tokens: int = 2048
    system_prompt: str = ""
    input_file: str = "unnamed"
    input_rows: int = Field(default=0, ge=0)
    max_concurrency: int = Field(default=5, ge=1)


class RunRecord(RunMeta):
    """A stored run with its completion statistics."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    status: RunStatus = RunStatus.PROCESSING
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    success_count: int = 0
    error_count: int = 0
    avg_latency: float = 0.0


class RunResultRecord(BoundaryModel):
    """One stored row of a run."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    run_id: str
    row_index: int
    input_json: str
    output: str
    status: ResultStatus
    latency: float = 0.0
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
