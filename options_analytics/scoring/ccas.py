"""Covered Call Attractiveness Score (CCAS).

Contracts must first clear a profit-buffer prefilter: the strike has to sit
far enough above the stock price, with the required distance growing
linearly from 4% at 8 DTE to 12% at 29 DTE. Survivors are scored on
annualized premium yield and on delta (lower delta is safer).
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from options_analytics.models.option import OptionContract
from options_analytics.models.score import CCASResult, PrefilterResult

from .base import clamp, geometric_mean_score, round_half_up

MIN_DTE = 8
MAX_DTE = 29
MIN_BUFFER = 0.04
MAX_BUFFER = 0.12
MIN_YIELD = 0.05
MAX_YIELD = 0.25
MIN_DELTA = 0.10
MAX_DELTA = 0.40


def potential_gain_ratio(stock_price: float, strike_price: float) -> float:
    if stock_price <= 0 or strike_price <= 0:
        return 0.0
    return strike_price / stock_price - 1


def required_buffer(
    dte: float,
    *,
    min_dte: float = MIN_DTE,
    max_dte: float = MAX_DTE,
    min_buffer: float = MIN_BUFFER,
    max_buffer: float = MAX_BUFFER,
) -> float:
    clamped = clamp(dte, min_dte, max_dte)
    return min_buffer + (clamped - min_dte) / (max_dte - min_dte) * (max_buffer - min_buffer)


def profit_buffer_prefilter(stock_price: float, strike_price: float, dte: float, **buffer_bounds: float) -> PrefilterResult:
    gain = potential_gain_ratio(stock_price, strike_price)
    buffer = required_buffer(dte, **buffer_bounds)
    return PrefilterResult(passed=gain >= buffer, potential_gain_ratio=gain, required_buffer=buffer)


def yield_score(
    bid_price: float,
    stock_price: float,
    dte: float,
    *,
    min_yield: float = MIN_YIELD,
    max_yield: float = MAX_YIELD,
) -> Tuple[float, float]:
    """Return ``(score_yield, annualized_yield)``."""

    if bid_price <= 0 or stock_price <= 0 or dte <= 0:
        return 0.0, 0.0

    annualized = (bid_price / stock_price) * (365 / dte)
    clamped = clamp(annualized, min_yield, max_yield)
    score = (clamped - min_yield) / (max_yield - min_yield) * 100
    return round_half_up(score, 1), annualized


def safety_score(delta: float, *, min_delta: float = MIN_DELTA, max_delta: float = MAX_DELTA) -> float:
    if delta < 0 or delta > 1:
        return 0.0
    clamped = clamp(delta, min_delta, max_delta)
    return round_half_up((max_delta - clamped) / (max_delta - min_delta) * 100, 1)


def final_ccas_score(score_yield: float, score_safety: float) -> int:
    return geometric_mean_score(score_yield, score_safety, cap=100.0)


def calculate_ccas(
    stock_price: float,
    strike_price: float,
    dte: float,
    bid_price: float,
    delta: Optional[float],
    config: Optional[dict] = None,
) -> CCASResult:
    bounds = dict(config or {})
    buffer_bounds = {key: bounds[key] for key in ("min_dte", "max_dte", "min_buffer", "max_buffer") if key in bounds}
    yield_bounds = {key: bounds[key] for key in ("min_yield", "max_yield") if key in bounds}
    delta_bounds = {key: bounds[key] for key in ("min_delta", "max_delta") if key in bounds}

    if stock_price <= 0 or strike_price <= 0 or dte <= 0 or bid_price <= 0 or delta is None:
        return CCASResult(passed=False, reason="incomplete inputs")

    prefilter = profit_buffer_prefilter(stock_price, strike_price, dte, **buffer_bounds)
    if not prefilter.passed:
        return CCASResult(
            passed=False,
            potential_gain_ratio=prefilter.potential_gain_ratio,
            required_buffer=prefilter.required_buffer,
            reason=(
                f"strike {prefilter.potential_gain_ratio:.2%} above spot is below the "
                f"{prefilter.required_buffer:.2%} buffer required at {dte:g} DTE"
            ),
        )

    score_yield, annualized = yield_score(bid_price, stock_price, dte, **yield_bounds)
    score_safety = safety_score(delta, **delta_bounds)
    ccas = final_ccas_score(score_yield, score_safety)
    return CCASResult(
        ccas_score=ccas,
        passed=True,
        score_yield=score_yield,
        score_safety=score_safety,
        potential_gain_ratio=prefilter.potential_gain_ratio,
        required_buffer=prefilter.required_buffer,
        annualized_yield=annualized,
        explanation=f"yield {score_yield:.1f} x safety {score_safety:.1f} = {ccas}",
    )


def score_ccas(contract: OptionContract, stock_price: float, config: Optional[dict] = None) -> CCASResult:
    return calculate_ccas(
        stock_price=stock_price,
        strike_price=contract.strike,
        dte=contract.days_to_expiry or 0,
        bid_price=contract.bid,
        delta=contract.delta,
        config=config,
    )


def score_ccas_batch(
    contracts: Iterable[OptionContract], stock_price: float, config: Optional[dict] = None
) -> List[Tuple[OptionContract, CCASResult]]:
    return [(contract, score_ccas(contract, stock_price, config)) for contract in contracts]


__all__ = [
    "calculate_ccas",
    "final_ccas_score",
    "potential_gain_ratio",
    "profit_buffer_prefilter",
    "required_buffer",
    "safety_score",
    "score_ccas",
    "score_ccas_batch",
    "yield_score",
]
