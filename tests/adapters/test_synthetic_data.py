from __future__ import annotations

from datetime import date

from options_analytics.adapters.synthetic import FALLBACK_PRICE_RANGES, SyntheticMarketData
from options_analytics.filters import evaluate
from options_analytics.math.volatility import compute_historical_volatility

TODAY = date(2024, 6, 3)


def make_adapter(seed=1):
    return SyntheticMarketData(seed=seed, today_provider=lambda: TODAY)


def test_quotes_are_flagged_and_within_range():
    quote = make_adapter().get_quote("NVDA")
    low, high = FALLBACK_PRICE_RANGES["NVDA"]
    assert quote.is_fallback
    assert low <= quote.price <= high


def test_unknown_symbol_uses_default_range():
    quote = make_adapter().get_quote("ZZZZ")
    assert 50 <= quote.price <= 200


def test_daily_prices_cover_the_lookback():
    bars = make_adapter().get_daily_prices("AAPL", 30)
    assert len(bars) == 31
    assert bars[0].trade_date == TODAY
    assert all(bar.trade_date.weekday() < 5 for bar in bars)
    assert compute_historical_volatility(bars, 30) > 0


def test_chain_is_built_around_the_given_price():
    chain = make_adapter().get_option_chain("AAPL", stock_price=100.0)

    calls = [contract for contract in chain if contract.option_type == "call"]
    puts = [contract for contract in chain if contract.option_type == "put"]
    assert len(calls) == len(puts) == 49
    assert {contract.strike for contract in calls} == {85, 90, 95, 100, 105, 110, 115}
    assert all(0 < contract.delta < 1 for contract in calls)
    assert all(contract.delta < 0 for contract in puts)
    assert all(contract.as_of == TODAY for contract in chain)


def test_synthetic_contracts_pass_qualification():
    chain = make_adapter().get_option_chain("MSFT", stock_price=350.0)
    assert all(evaluate(contract).is_qualified for contract in chain)


def test_same_seed_is_reproducible():
    first = make_adapter(7).get_option_chain("TSLA", stock_price=240.0)
    second = make_adapter(7).get_option_chain("TSLA", stock_price=240.0)
    assert [contract.implied_volatility for contract in first] == [contract.implied_volatility for contract in second]
    assert make_adapter(7).get_quote("TSLA").price == make_adapter(7).get_quote("TSLA").price
