"""Historical volatility from daily close prices.

Volatility is the annualized sample standard deviation of daily log returns,
expressed as a percentage (``32.45`` means 32.45%). The estimator is a pure
function of its inputs so it can be cached and tested in isolation.
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence

import numpy as np

from options_analytics.models.option import PriceBar

TRADING_DAYS_PER_YEAR = 252
MIN_VALID_RETURN_RATIO = 0.8
DEFAULT_HV = 25.0

# Fallback HV (%) used when the price history cannot produce an estimate.
DEFAULT_HV_BY_SYMBOL: Dict[str, float] = {
    "NVDA": 45.0, "TSLA": 50.0, "META": 35.0, "NFLX": 40.0,
    "AAPL": 25.0, "MSFT": 25.0, "GOOGL": 30.0, "AMZN": 35.0,
    "JPM": 20.0, "V": 18.0, "MA": 18.0, "BRK-B": 15.0,
    "WMT": 15.0, "COST": 18.0, "HD": 20.0,
    "XOM": 25.0,
    "JNJ": 12.0, "LLY": 22.0,
    "AVGO": 30.0, "ORCL": 25.0,
    "BABA": 40.0, "PDD": 45.0, "JD": 35.0, "NTES": 30.0, "TME": 35.0,
}


class InsufficientDataError(ValueError):
    """Raised when a price series cannot support the requested HV window."""


def _latest_window(prices: Sequence[PriceBar], size: int) -> List[PriceBar]:
    by_date = {bar.trade_date: bar for bar in prices}
    newest_first = sorted(by_date.values(), key=lambda bar: bar.trade_date, reverse=True)
    return newest_first[:size]


def compute_historical_volatility(prices: Sequence[PriceBar], period: int) -> float:
    """Return the annualized historical volatility (%) over ``period`` trading days.

    Args:
        prices: Daily bars in any order. Only the most recent ``period + 1``
            bars are used.
        period: Number of daily returns in the window.

    Raises:
        InsufficientDataError: If fewer than ``period + 1`` bars exist or fewer
            than 80% of the returns in the window are usable.
    """

    if period < 1:
        raise ValueError("period must be a positive number of trading days")

    window = _latest_window(prices, period + 1)
    if len(window) < period + 1:
        raise InsufficientDataError(f"Need {period + 1} daily prices, got {len(window)}")

    closes = np.array([bar.adjusted_close for bar in window], dtype=float)
    current, previous = closes[:-1], closes[1:]
    valid = (current > 0) & (previous > 0)
    returns = np.log(current[valid] / previous[valid])

    required = math.ceil(period * MIN_VALID_RETURN_RATIO)
    if returns.size < max(required, 2):
        raise InsufficientDataError(
            f"Need at least {max(required, 2)} valid returns for a {period}-day HV, got {returns.size}"
        )

    daily_volatility = float(np.std(returns, ddof=1))
    return daily_volatility * math.sqrt(TRADING_DAYS_PER_YEAR) * 100


def hv_period_for_dte(days_to_expiry: int) -> int:
    """Return the HV window (trading days) matching an option's tenor."""

    if days_to_expiry <= 20:
        return 20
    if days_to_expiry <= 60:
        return 30
    if days_to_expiry <= 180:
        return 60
    return 180


def default_hv(symbol: str) -> float:
    return DEFAULT_HV_BY_SYMBOL.get(symbol.upper(), DEFAULT_HV)


__all__ = [
    "DEFAULT_HV",
    "DEFAULT_HV_BY_SYMBOL",
    "InsufficientDataError",
    "compute_historical_volatility",
    "default_hv",
    "hv_period_for_dte",
]
