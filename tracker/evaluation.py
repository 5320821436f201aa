"""Read-only score aggregation for display."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from schemas.listing import RoundCandidate


class ScoreBand(str, Enum):
    """Display band for a percentage score. Presentation only."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    LOW = "low"


BAND_THRESHOLDS: list[tuple[float, ScoreBand]] = [
    (80, ScoreBand.EXCELLENT),
    (60, ScoreBand.GOOD),
    (40, ScoreBand.FAIR),
]


def score_band(score: float) -> ScoreBand:
    for threshold, band in BAND_THRESHOLDS:
        if score >= threshold:
            return band
    return ScoreBand.LOW


def extract_score(evaluation_result: Mapping[str, Any] | None) -> float | None:
    """Pull the percentage score out of an evaluation payload.

    The score is either top-level or nested under competency_evaluation.
    """
    if not evaluation_result:
        return None
    value = evaluation_result.get("overall_percentage_score")
    if value is None:
        nested = evaluation_result.get("competency_evaluation") or {}
        if isinstance(nested, Mapping):
            value = nested.get("overall_percentage_score")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def candidate_score(candidate: RoundCandidate) -> float | None:
    """Score of the candidate's latest evaluation in this round, if any."""
    record = candidate.record
    if record is None:
        return None
    for evaluation in reversed(record.evaluations):
        score = extract_score(evaluation.evaluation_result)
        if score is not None:
            return score
    return None


class EvaluationSummary(BaseModel):
    """Per-round scores plus the overall value shown to the user."""

    round_scores: dict[int, float] = Field(default_factory=dict)
    overall_score: float | None = None

    @property
    def band(self) -> ScoreBand | None:
        if self.overall_score is None:
            return None
        return score_band(self.overall_score)

    def round_bands(self) -> dict[int, ScoreBand]:
        return {order: score_band(s) for order, s in sorted(self.round_scores.items())}


def aggregate(
    round_scores: Mapping[int, float], overall: float | None = None
) -> EvaluationSummary:
    """Build a summary from round order -> score.

    Only an explicit overall value becomes the overall score. Round scores
    are never combined, so without one there is no overall score.
    """
    scores = {int(order): float(s) for order, s in round_scores.items()}
    overall_score = float(overall) if overall is not None else None
    return EvaluationSummary(round_scores=scores, overall_score=overall_score)
