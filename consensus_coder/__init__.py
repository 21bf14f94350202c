"""
Consensus Coder - multi-model coding with a judge model.

Several worker models code the same content independently; their agreement
is measured with Cohen's Kappa and a judge model synthesizes one answer.
"""

from .batch import BatchReport, BatchRowOutcome, run_batch
from .consensus import (
    ConsensusError,
    ConsensusOrchestrator,
    JudgeError,
    QuorumError,
    run_consensus,
)
from .models import (
    ConsensusRequest,
    ConsensusResult,
    ConsensusType,
    JudgeSpec,
    WorkerSpec,
)

__version__ = "0.1.0"

__all__ = [
    "ConsensusOrchestrator",
    "run_consensus",
    "run_batch",
    "BatchReport",
    "BatchRowOutcome",
    "ConsensusRequest",
    "ConsensusResult",
    "ConsensusType",
    "WorkerSpec",
    "JudgeSpec",
    "ConsensusError",
    "QuorumError",
    "JudgeError",
]
