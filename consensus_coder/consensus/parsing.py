"""
Parsing of free-text model output.

Malformed model output is an expected outcome, so parsers return a tagged
result instead of raising: ``Parsed(value)`` or ``Unparsed(raw_text, reason)``.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, Field, StrictInt, ValidationError

T = TypeVar("T")

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_BRACED_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unparsed:
    raw_text: str
    reason: str


ParseResult = Union[Parsed[T], Unparsed]


def extract_json_object(content: str) -> ParseResult[dict[str, Any]]:
    """
    Find a JSON object in model output.

    Tries the whole text, then a fenced code block, then the outermost
    braces.
    """
    candidates = [content.strip()]
    fenced = _FENCED_BLOCK.search(content)
    if fenced:
        candidates.append(fenced.group(1).strip())
    braced = _BRACED_OBJECT.search(content)
    if braced:
        candidates.append(braced.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return Parsed(data)

    return Unparsed(content, "no JSON object found")


class QualityScores(BaseModel):
    """Judge-assigned quality score per worker."""

    quality_scores: list[StrictInt] = Field(...)


def parse_quality_scores(content: str, expected: int) -> ParseResult[list[int]]:
    """
    Parse ``{"quality_scores": [...]}`` with one integer 1-10 per worker.

    Args:
        content: Raw judge output
        expected: Number of workers that were scored
    """
    extracted = extract_json_object(content)
    if isinstance(extracted, Unparsed):
        return extracted

    try:
        scores = QualityScores.model_validate(extracted.value).quality_scores
    except ValidationError as e:
        return Unparsed(content, f"invalid quality_scores: {e.error_count()} error(s)")

    if len(scores) != expected:
        return Unparsed(content, f"expected {expected} scores, got {len(scores)}")
    if any(not 1 <= s <= 10 for s in scores):
        return Unparsed(content, "scores must be between 1 and 10")
    return Parsed(scores)
