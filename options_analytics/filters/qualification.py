"""Liquidity, spread and IV sanity gate applied before scoring."""

from __future__ import annotations

from pydantic import BaseModel

from options_analytics.models.option import OptionContract
from options_analytics.models.score import QualificationResult


class FilterConfig(BaseModel):
    min_volume: int = 10
    min_open_interest: int = 100
    max_spread_percent: float = 10.0
    min_iv_percent: float = 15.0
    max_iv_percent: float = 200.0


DEFAULT_FILTER_CONFIG = FilterConfig()


def iv_as_percent(implied_volatility: float) -> float:
    """Normalize an IV quote to percent; values below 1 are taken as decimals."""

    iv = float(implied_volatility or 0.0)
    if iv < 1:
        return iv * 100
    return iv


def passes_liquidity(contract: OptionContract, config: FilterConfig) -> bool:
    return contract.volume > config.min_volume and contract.open_interest > config.min_open_interest


def passes_spread(contract: OptionContract, config: FilterConfig) -> bool:
    # A missing ask means the spread cannot be measured.
    if contract.ask <= 0:
        return False
    spread_percent = (contract.ask - contract.bid) / contract.ask * 100
    return spread_percent < config.max_spread_percent


def passes_iv_sanity(contract: OptionContract, config: FilterConfig) -> bool:
    iv = iv_as_percent(contract.implied_volatility)
    return config.min_iv_percent <= iv <= config.max_iv_percent


def evaluate(contract: OptionContract, config: FilterConfig | None = None) -> QualificationResult:
    """Return which of the three predicates ``contract`` passes."""

    config = config or DEFAULT_FILTER_CONFIG
    liquidity = passes_liquidity(contract, config)
    bid_ask_spread = passes_spread(contract, config)
    iv_sanity = passes_iv_sanity(contract, config)
    return QualificationResult(
        is_qualified=liquidity and bid_ask_spread and iv_sanity,
        liquidity=liquidity,
        bid_ask_spread=bid_ask_spread,
        iv_sanity=iv_sanity,
    )


__all__ = [
    "DEFAULT_FILTER_CONFIG",
    "FilterConfig",
    "evaluate",
    "iv_as_percent",
    "passes_iv_sanity",
    "passes_liquidity",
    "passes_spread",
]
