"""
Agreement strategies.

The orchestrator only needs two numbers from worker outputs: a kappa for the
first two workers and an all-pairs agreement matrix. How raw text becomes
comparable labels is decided here.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ..models import AgreementMatrix
from .agreement import (
    cohen_kappa,
    pad_sequences,
    pairwise_agreement,
    tokenize_labels,
)


class AgreementStrategy(ABC):
    """Turns worker outputs into agreement statistics."""

    name: str = "base"

    @abstractmethod
    def pair_kappa(self, first: str, second: str) -> float:
        """Cohen's Kappa between two worker outputs (NaN if undefined)."""
        pass

    @abstractmethod
    def matrix(self, outputs: Sequence[str]) -> AgreementMatrix:
        """Agreement matrix across all worker outputs."""
        pass


class PositionalAgreement(AgreementStrategy):
    """
    Compare tokens by position after padding.

    Assumes workers return labels in a stable order, e.g. a fixed list of
    fields in CSV form.
    """

    name = "positional"

    def pair_kappa(self, first: str, second: str) -> float:
        a, b = pad_sequences([tokenize_labels(first), tokenize_labels(second)])
        return cohen_kappa(a, b)

    def matrix(self, outputs: Sequence[str]) -> AgreementMatrix:
        tokenized = [tokenize_labels(o) for o in outputs]
        return pairwise_agreement(pad_sequences(tokenized, min_length=1))


class LabelSetAgreement(AgreementStrategy):
    """
    Compare outputs as unordered label sets.

    Kappa is computed over binary presence vectors spanning the union of
    labels; the matrix holds Jaccard similarities.
    """

    name = "label_set"

    def pair_kappa(self, first: str, second: str) -> float:
        labels_a = set(tokenize_labels(first))
        labels_b = set(tokenize_labels(second))
        universe = sorted(labels_a | labels_b)
        a = ["1" if label in labels_a else "0" for label in universe]
        b = ["1" if label in labels_b else "0" for label in universe]
        return cohen_kappa(a, b)

    def matrix(self, outputs: Sequence[str]) -> AgreementMatrix:
        label_sets = [set(tokenize_labels(o)) for o in outputs]
        n = len(label_sets)
        values = [[1.0] * n for _ in range(n)]
        pair_labels: list[str] = []
        pair_agreements: list[float] = []

        for i in range(n):
            for j in range(i + 1, n):
                similarity = self._jaccard(label_sets[i], label_sets[j])
                values[i][j] = similarity
                values[j][i] = similarity
                pair_labels.append(f"W{i + 1}–W{j + 1}")
                pair_agreements.append(similarity)

        return AgreementMatrix(
            labels=[f"Worker {i + 1}" for i in range(n)],
            values=values,
            pair_labels=pair_labels,
            pair_agreements=pair_agreements,
        )

    @staticmethod
    def _jaccard(a: set[str], b: set[str]) -> float:
        union = a | b
        if not union:
            return 1.0
        return len(a & b) / len(union)


_STRATEGIES: dict[str, type[AgreementStrategy]] = {
    PositionalAgreement.name: PositionalAgreement,
    LabelSetAgreement.name: LabelSetAgreement,
}


def get_agreement_strategy(name: str = PositionalAgreement.name) -> AgreementStrategy:
    """
    Get an agreement strategy by name.

    Raises:
        ValueError: If the strategy name is unknown
    """
    if name not in _STRATEGIES:
        raise ValueError(f"Unknown agreement strategy: {name}")
    return _STRATEGIES[name]()
