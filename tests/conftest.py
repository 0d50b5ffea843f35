from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable

import pytest

from options_analytics.models.option import OptionContract, PriceBar

TODAY = date(2024, 6, 3)


def make_contract(**overrides: Any) -> OptionContract:
    values = {
        "contract_id": "NVDA240628C00130000",
        "symbol": "NVDA",
        "option_type": "call",
        "strike": 130.0,
        "expiration": TODAY + timedelta(days=25),
        "as_of": TODAY,
        "bid": 4.8,
        "ask": 5.0,
        "mark": 4.9,
        "volume": 500,
        "open_interest": 2_000,
        "implied_volatility": 0.30,
        "greeks": {"delta": 0.5},
        "historical_volatility": 30.0,
    }
    values.update(overrides)
    return OptionContract(**values)


def make_price_bars(closes, end: date = TODAY):
    """Build one bar per weekday ending at ``end``; ``closes`` is oldest first."""

    bars = []
    day = end
    for close in reversed(list(closes)):
        while day.weekday() >= 5:
            day -= timedelta(days=1)
        bars.append(PriceBar(trade_date=day, adjusted_close=close))
        day -= timedelta(days=1)
    return bars


@pytest.fixture
def contract_factory() -> Callable[..., OptionContract]:
    return make_contract


@pytest.fixture
def today() -> date:
    return TODAY
