from __future__ import annotations

import random
from datetime import date

import pytest

from conftest import make_price_bars
from options_analytics.math.volatility import (
    DEFAULT_HV,
    InsufficientDataError,
    compute_historical_volatility,
    default_hv,
    hv_period_for_dte,
)
from options_analytics.models.option import PriceBar


def test_constant_prices_have_zero_volatility():
    bars = make_price_bars([100.0] * 21)
    assert compute_historical_volatility(bars, 20) == 0.0


def test_alternating_prices_match_hand_computed_value():
    closes = [100.0 if index % 2 == 0 else 110.0 for index in range(21)]
    hv = compute_historical_volatility(make_price_bars(closes), 20)
    assert hv == pytest.approx(155.23, abs=0.05)


def test_input_order_does_not_matter():
    rng = random.Random(7)
    closes = [100.0]
    for _ in range(40):
        closes.append(closes[-1] * (1 + rng.uniform(-0.03, 0.03)))
    bars = make_price_bars(closes)

    newest_first = compute_historical_volatility(bars, 30)
    oldest_first = compute_historical_volatility(list(reversed(bars)), 30)
    shuffled = list(bars)
    rng.shuffle(shuffled)

    assert newest_first == pytest.approx(oldest_first)
    assert compute_historical_volatility(shuffled, 30) == pytest.approx(newest_first)


def test_only_latest_window_is_used():
    calm = [100.0] * 21
    wild = [100.0 if index % 2 == 0 else 150.0 for index in range(30)]
    bars = make_price_bars(wild + calm)
    assert compute_historical_volatility(bars, 20) == 0.0


def test_duplicate_dates_collapse_to_one_bar():
    bars = make_price_bars([100.0] * 21)
    duplicate = PriceBar(trade_date=bars[0].trade_date, adjusted_close=100.0)
    assert compute_historical_volatility(bars + [duplicate], 20) == 0.0

    with pytest.raises(InsufficientDataError):
        compute_historical_volatility(make_price_bars([100.0] * 20) + [bars[0]] * 5, 20)


def test_too_few_prices_raise():
    with pytest.raises(InsufficientDataError):
        compute_historical_volatility(make_price_bars([100.0] * 20), 20)


def test_non_positive_prices_are_skipped_until_too_many():
    closes = [100.0, 101.0] * 10 + [100.0]
    closes[5] = 0.0
    # One bad price removes two returns: 18 of 20 remain, above the 80% floor.
    assert compute_historical_volatility(make_price_bars(closes), 20) > 0

    closes[9] = -1.0
    closes[13] = 0.0
    with pytest.raises(InsufficientDataError):
        compute_historical_volatility(make_price_bars(closes), 20)


def test_invalid_period_raises_value_error():
    with pytest.raises(ValueError):
        compute_historical_volatility(make_price_bars([100.0] * 5), 0)


def test_price_bar_accepts_provider_aliases():
    bar = PriceBar.model_validate({"date": "2024-05-31", "close": "101.5"})
    assert bar.trade_date == date(2024, 5, 31)
    assert bar.adjusted_close == 101.5


@pytest.mark.parametrize(
    "dte, expected",
    [(-3, 20), (0, 20), (20, 20), (21, 30), (60, 30), (61, 60), (180, 60), (181, 180), (400, 180)],
)
def test_hv_period_for_dte(dte, expected):
    assert hv_period_for_dte(dte) == expected


def test_default_hv_table():
    assert default_hv("nvda") == 45.0
    assert default_hv("JNJ") == 12.0
    assert default_hv("UNKNOWN") == DEFAULT_HV
