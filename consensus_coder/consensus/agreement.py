"""
Inter-rater agreement statistics over tokenized label sequences.

Sequences are compared position by position: worker outputs are split into
tokens and padded with empty strings, so index ``i`` of one worker is only
ever compared with index ``i`` of another.
"""

import math
import re
from collections import Counter
from typing import Optional, Sequence

from ..models import AgreementMatrix

_TOKEN_SPLIT = re.compile(r"[,\n]+")

NOT_AVAILABLE = "N/A"

# Landis & Koch (1977) bands, lower edge inclusive.
KAPPA_BANDS: tuple[tuple[float, str], ...] = (
    (0.8, "Almost Perfect"),
    (0.6, "Substantial"),
    (0.4, "Moderate"),
    (0.2, "Fair"),
)

# Bands reported on consensus results; no "Slight" band.
SUMMARY_KAPPA_BANDS: tuple[tuple[float, str], ...] = (
    (0.2, "Poor"),
    (0.4, "Fair"),
    (0.6, "Moderate"),
    (0.8, "Substantial"),
)


def cohen_kappa(a: Sequence[str], b: Sequence[str]) -> float:
    """
    Cohen's Kappa for two raters.

    Returns NaN when the sequences differ in length, are both empty, or when
    chance agreement is already 1 (a single category observed by both).
    """
    if len(a) != len(b) or len(a) == 0:
        return math.nan

    n = len(a)
    po = sum(1 for x, y in zip(a, b) if x == y) / n

    freq_a = Counter(a)
    freq_b = Counter(b)
    pe = sum((freq_a[c] / n) * (freq_b[c] / n) for c in set(freq_a) | set(freq_b))

    if pe == 1:
        return math.nan
    return (po - pe) / (1 - pe)


def interpret_kappa(k: float) -> str:
    """Six-band Landis & Koch label for a kappa value."""
    if math.isnan(k):
        return NOT_AVAILABLE
    if k < 0:
        return "Poor"
    for lower, label in KAPPA_BANDS:
        if k >= lower:
            return label
    return "Slight"


def summary_kappa_label(k: Optional[float]) -> str:
    """Five-band label attached to consensus results."""
    if k is None or math.isnan(k):
        return NOT_AVAILABLE
    for upper, label in SUMMARY_KAPPA_BANDS:
        if k < upper:
            return label
    return "Almost Perfect"


def exact_match_rate(a: Sequence[str], b: Sequence[str]) -> float:
    """Fraction of index-aligned positions where both raters agree."""
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    return sum(1 for x, y in zip(a, b) if x == y) / len(a)


def pairwise_agreement(sequences: Sequence[Sequence[str]]) -> AgreementMatrix:
    """
    Exact-match agreement for every pair of raters.

    Args:
        sequences: One equal-length token sequence per rater

    Returns:
        AgreementMatrix with a unit diagonal and pairs in ascending (i, j) order
    """
    n = len(sequences)
    values = [[1.0] * n for _ in range(n)]
    pair_labels: list[str] = []
    pair_agreements: list[float] = []

    for i in range(n):
        for j in range(i + 1, n):
            rate = exact_match_rate(sequences[i], sequences[j])
            values[i][j] = rate
            values[j][i] = rate
            pair_labels.append(f"W{i + 1}–W{j + 1}")
            pair_agreements.append(rate)

    return AgreementMatrix(
        labels=[f"Worker {i + 1}" for i in range(n)],
        values=values,
        pair_labels=pair_labels,
        pair_agreements=pair_agreements,
    )


def tokenize_labels(text: str) -> list[str]:
    """Split a worker output on commas/newlines into trimmed, non-empty tokens."""
    return [token.strip() for token in _TOKEN_SPLIT.split(text) if token.strip()]


def pad_sequences(
    sequences: Sequence[Sequence[str]], min_length: int = 0
) -> list[list[str]]:
    """Right-pad every sequence with empty strings to a common length."""
    target = max([min_length, *(len(s) for s in sequences)])
    return [list(s) + [""] * (target - len(s)) for s in sequences]
