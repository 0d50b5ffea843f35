"""Convenient exports for scoring components."""

from .cas import buy_call_score, score_cas, sell_call_score, speculative_score, volatility_score
from .ccas import (
    calculate_ccas,
    final_ccas_score,
    potential_gain_ratio,
    profit_buffer_prefilter,
    required_buffer,
    safety_score,
    score_ccas,
    score_ccas_batch,
    yield_score,
)
from .config import DEFAULT_SCORING_CONFIG, merge_config
from .engine import ScoringEngine
from .grades import score_description, score_grade

__all__ = [
    "DEFAULT_SCORING_CONFIG",
    "ScoringEngine",
    "buy_call_score",
    "calculate_ccas",
    "final_ccas_score",
    "merge_config",
    "potential_gain_ratio",
    "profit_buffer_prefilter",
    "required_buffer",
    "safety_score",
    "score_ccas",
    "score_ccas_batch",
    "score_cas",
    "score_description",
    "score_grade",
    "sell_call_score",
    "speculative_score",
    "volatility_score",
]
