"""Composite Attractiveness Score (CAS) for buying and selling calls.

CAS is the geometric mean of two sub-scores:

* ``score_vol``: how cheap implied volatility is relative to historical
  volatility (IV/HV clamped to ``[0.7, 2.0]`` and mapped to ``[100, 0]``).
* ``score_spec``: delta bought per dollar of premium, relative to the best
  contract of the same expiration.

The sell-side score inverts both sub-scores: rich IV and poor delta per
premium are what a call seller wants.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from options_analytics.models.option import OptionContract
from options_analytics.models.score import CASMetadata, CASResult, CASSideScore

from .base import clamp, geometric_mean_score, round_half_up, to_decimal

MIN_VOL_RATIO = 0.7
MAX_VOL_RATIO = 2.0


def volatility_score(
    implied_volatility: float,
    historical_volatility: float,
    *,
    min_ratio: float = MIN_VOL_RATIO,
    max_ratio: float = MAX_VOL_RATIO,
) -> int:
    """Score IV against HV; a cheap IV (low ratio) scores high."""

    iv = to_decimal(implied_volatility)
    hv = to_decimal(historical_volatility)
    if iv <= 0 or hv <= 0:
        return 0

    ratio = clamp(iv / hv, min_ratio, max_ratio)
    return int(round_half_up((max_ratio - ratio) / (max_ratio - min_ratio) * 100))


def speculative_score(delta: float, price: float, peers: Iterable[Tuple[float, float]]) -> int:
    """Score delta per premium dollar against the best ``(delta, price)`` peer."""

    if delta <= 0 or price <= 0:
        return 0

    best = max(
        (peer_delta / peer_price for peer_delta, peer_price in peers if peer_delta > 0 and peer_price > 0),
        default=0.0,
    )
    if best <= 0:
        return 0

    score = (delta / price) / best * 100
    return int(round_half_up(min(100.0, score)))


def _ask_price(contract: OptionContract) -> float:
    return contract.ask or contract.mark


def _bid_price(contract: OptionContract) -> float:
    return contract.bid or contract.mark


def same_expiration_calls(contract: OptionContract, candidates: Iterable[OptionContract]) -> List[OptionContract]:
    return [
        other
        for other in candidates
        if other.option_type == "call" and other.expiration == contract.expiration
    ]


def _incomplete(price: float, price_type: str) -> CASSideScore:
    return CASSideScore(price=price, price_type=price_type, explanation="incomplete data")


def buy_call_score(
    contract: OptionContract,
    peers: Sequence[OptionContract],
    *,
    min_ratio: float = MIN_VOL_RATIO,
    max_ratio: float = MAX_VOL_RATIO,
) -> CASSideScore:
    """Score buying ``contract`` at the ask."""

    iv = contract.implied_volatility
    hv = contract.historical_volatility or 0.0
    ask = _ask_price(contract)
    if iv <= 0 or hv <= 0 or ask <= 0:
        return _incomplete(ask, "ask")

    score_vol = volatility_score(iv, hv, min_ratio=min_ratio, max_ratio=max_ratio)
    score_spec = speculative_score(
        contract.delta,
        ask,
        ((peer.delta, _ask_price(peer)) for peer in peers),
    )
    score = geometric_mean_score(score_vol, score_spec)
    return CASSideScore(
        score=score,
        score_vol=score_vol,
        score_spec=score_spec,
        iv_hv_ratio=round(to_decimal(iv) / to_decimal(hv), 2),
        delta_per_premium=round(contract.delta / ask, 4),
        price=ask,
        price_type="ask",
        explanation=f"volatility {score_vol} x speculative {score_spec} = {score}",
    )


def sell_call_score(
    contract: OptionContract,
    peers: Sequence[OptionContract],
    *,
    min_ratio: float = MIN_VOL_RATIO,
    max_ratio: float = MAX_VOL_RATIO,
) -> CASSideScore:
    """Score selling ``contract`` at the bid by inverting the buyer's sub-scores."""

    iv = contract.implied_volatility
    hv = contract.historical_volatility or 0.0
    bid = _bid_price(contract)
    if iv <= 0 or hv <= 0 or bid <= 0:
        return _incomplete(bid, "bid")

    score_vol = 100 - volatility_score(iv, hv, min_ratio=min_ratio, max_ratio=max_ratio)
    score_spec = 100 - speculative_score(
        contract.delta,
        bid,
        ((peer.delta, _bid_price(peer)) for peer in peers),
    )
    score = geometric_mean_score(score_vol, score_spec)
    return CASSideScore(
        score=score,
        score_vol=score_vol,
        score_spec=score_spec,
        iv_hv_ratio=round(to_decimal(iv) / to_decimal(hv), 2),
        delta_per_premium=round(contract.delta / bid, 4),
        price=bid,
        price_type="bid",
        explanation=f"volatility {score_vol} x speculative {score_spec} = {score}",
    )


def score_cas(
    contract: OptionContract,
    peers: Iterable[OptionContract],
    *,
    min_ratio: float = MIN_VOL_RATIO,
    max_ratio: float = MAX_VOL_RATIO,
) -> CASResult:
    """Score ``contract`` for both framings against calls sharing its expiration."""

    group = same_expiration_calls(contract, peers)
    return CASResult(
        buy_call=buy_call_score(contract, group, min_ratio=min_ratio, max_ratio=max_ratio),
        sell_call=sell_call_score(contract, group, min_ratio=min_ratio, max_ratio=max_ratio),
        metadata=CASMetadata(
            symbol=contract.symbol,
            expiration=contract.expiration,
            days_to_expiry=contract.days_to_expiry,
            strike=contract.strike,
            same_expiry_count=len(group),
            ask=contract.ask,
            bid=contract.bid,
            spread=contract.spread,
        ),
    )


__all__ = [
    "buy_call_score",
    "same_expiration_calls",
    "score_cas",
    "sell_call_score",
    "speculative_score",
    "volatility_score",
]
