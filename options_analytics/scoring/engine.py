from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from options_analytics.models.option import OptionContract
from options_analytics.models.score import CASResult, CCASResult, GradedScore, ScoreSummary

from .cas import score_cas
from .ccas import score_ccas
from .config import merge_config
from .grades import graded

logger = logging.getLogger(__name__)


class ScoringEngine:
    """Applies CAS and CCAS scoring with a shared, overridable configuration."""

    def __init__(self, config: Dict[str, object] | None = None):
        self.config = merge_config(config)

    @property
    def volatility_bounds(self) -> Dict[str, float]:
        return dict(self.config["volatility"])

    @property
    def covered_call_bounds(self) -> Dict[str, float]:
        return dict(self.config["covered_call"])

    @property
    def grade_bands(self) -> Dict[str, float]:
        return dict(self.config["grade_bands"])

    def score_cas(self, contract: OptionContract, peers: Iterable[OptionContract]) -> CASResult:
        bounds = self.volatility_bounds
        return score_cas(
            contract,
            peers,
            min_ratio=bounds["min_ratio"],
            max_ratio=bounds["max_ratio"],
        )

    def score_ccas(self, contract: OptionContract, stock_price: float) -> CCASResult:
        return score_ccas(contract, stock_price, self.covered_call_bounds)

    def score_ccas_batch(
        self, contracts: Iterable[OptionContract], stock_price: float
    ) -> List[Tuple[OptionContract, CCASResult]]:
        return [(contract, self.score_ccas(contract, stock_price)) for contract in contracts]

    def grade(self, score: int, strategy: str = "buy") -> GradedScore:
        return graded(score, strategy, self.grade_bands)

    def summarize(self, cas: Optional[CASResult], ccas: Optional[CCASResult] = None) -> ScoreSummary:
        summary = ScoreSummary()
        if cas is not None:
            summary.buy_call = self.grade(cas.buy_call.score, "buy")
            summary.sell_call = self.grade(cas.sell_call.score, "sell")
            if cas.buy_call.explanation == "incomplete data":
                summary.notes.append("missing implied volatility, historical volatility or price")
        if ccas is not None:
            if ccas.passed:
                summary.covered_call = self.grade(ccas.ccas_score, "covered_call")
            elif ccas.reason:
                summary.notes.append(ccas.reason)
        return summary


__all__ = ["ScoringEngine"]
