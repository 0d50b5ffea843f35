from __future__ import annotations

from typing import Mapping, Optional

from options_analytics.models.score import GradedScore

DEFAULT_GRADE_BANDS: Mapping[str, float] = {"excellent": 80, "good": 65, "average": 45}

_STRATEGY_LABELS = {
    "buy": "call buying",
    "sell": "call selling",
    "covered_call": "covered call",
}


def score_grade(score: float, bands: Optional[Mapping[str, float]] = None) -> str:
    bands = bands or DEFAULT_GRADE_BANDS
    if score >= bands["excellent"]:
        return "excellent"
    if score >= bands["good"]:
        return "good"
    if score >= bands["average"]:
        return "average"
    return "poor"


def score_description(score: float, strategy: str = "buy", bands: Optional[Mapping[str, float]] = None) -> str:
    """Human readable label such as ``"good call buying opportunity"``."""

    label = _STRATEGY_LABELS.get(strategy, strategy)
    return f"{score_grade(score, bands)} {label} opportunity"


def graded(score: int, strategy: str = "buy", bands: Optional[Mapping[str, float]] = None) -> GradedScore:
    return GradedScore(
        score=score,
        grade=score_grade(score, bands),
        description=score_description(score, strategy, bands),
    )


__all__ = ["DEFAULT_GRADE_BANDS", "graded", "score_description", "score_grade"]
