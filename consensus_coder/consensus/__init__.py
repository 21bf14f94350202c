"""
Consensus mechanism for multi-model coding.

Provides agreement analytics, comparison strategies, judge orchestration
and best-effort enrichment.
"""

from .agreement import (
    cohen_kappa,
    exact_match_rate,
    interpret_kappa,
    pad_sequences,
    pairwise_agreement,
    summary_kappa_label,
    tokenize_labels,
)
from .enrichment import Enricher
from .orchestrator import (
    ConsensusError,
    ConsensusOrchestrator,
    ConsensusStage,
    JudgeError,
    QuorumError,
    build_judge_context,
    run_consensus,
)
from .parsing import Parsed, Unparsed, extract_json_object, parse_quality_scores
from .strategies import (
    AgreementStrategy,
    LabelSetAgreement,
    PositionalAgreement,
    get_agreement_strategy,
)

__all__ = [
    # Agreement
    "cohen_kappa",
    "interpret_kappa",
    "summary_kappa_label",
    "exact_match_rate",
    "pairwise_agreement",
    "tokenize_labels",
    "pad_sequences",
    # Strategies
    "AgreementStrategy",
    "PositionalAgreement",
    "LabelSetAgreement",
    "get_agreement_strategy",
    # Parsing
    "Parsed",
    "Unparsed",
    "extract_json_object",
    "parse_quality_scores",
    # Orchestration
    "ConsensusOrchestrator",
    "ConsensusStage",
    "ConsensusError",
    "QuorumError",
    "JudgeError",
    "Enricher",
    "build_judge_context",
    "run_consensus",
]
