from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from options_analytics.adapters.alphavantage import AlphaVantageAdapter
from options_analytics.adapters.base import DataNotAvailable, FatalProviderError, ProviderError, RateLimitError
from options_analytics.service import live_filter


def make_response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status_code}")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def adapter(session):
    return AlphaVantageAdapter(api_key="test-key", base_url="https://example.test/", session=session)


@pytest.fixture(autouse=True)
def no_backoff_sleep():
    with patch("options_analytics.adapters.alphavantage.random.uniform", return_value=0), patch(
        "options_analytics.adapters.alphavantage.time.sleep"
    ) as sleep:
        yield sleep


def test_api_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("ALPHAVANTAGE_API_KEY", "env-key")
    assert AlphaVantageAdapter(session=MagicMock()).api_key == "env-key"
    monkeypatch.delenv("ALPHAVANTAGE_API_KEY")
    assert AlphaVantageAdapter(session=MagicMock()).api_key == "demo"


def test_get_quote_uses_latest_intraday_bar(adapter, session):
    session.get.return_value = make_response(
        {
            "Time Series (5min)": {
                "2024-06-03 15:55:00": {"1. open": "120", "2. high": "121", "3. low": "119", "4. close": "120.5", "5. volume": "1000"},
                "2024-06-03 16:00:00": {"1. open": "120.5", "2. high": "122", "3. low": "120", "4. close": "121.75", "5. volume": "2500"},
            }
        }
    )
    quote = adapter.get_quote("NVDA")

    assert quote.price == 121.75
    assert quote.volume == 2500
    assert quote.timestamp == "2024-06-03 16:00:00"
    assert not quote.is_fallback

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == "https://example.test/query"
    assert params["function"] == "TIME_SERIES_INTRADAY"
    assert params["apikey"] == "test-key"
    assert params["datatype"] == "json"


def test_daily_prices_are_adjusted_and_newest_first(adapter, session):
    series = {
        f"2024-05-{day:02d}": {"4. close": "999", "5. adjusted close": str(100 + day)} for day in range(20, 32)
    }
    session.get.return_value = make_response({"Time Series (Daily)": series})

    bars = adapter.get_daily_prices("AAPL", 5)
    assert len(bars) == 6
    assert bars[0].trade_date == date(2024, 5, 31)
    assert bars[0].adjusted_close == 131.0
    assert bars[-1].trade_date == date(2024, 5, 26)
    assert session.get.call_args.kwargs["params"]["outputsize"] == "compact"


def test_long_lookback_requests_full_history(adapter, session):
    session.get.return_value = make_response({"Time Series (Daily)": {"2024-05-31": {"5. adjusted close": "10"}}})
    adapter.get_daily_prices("AAPL", 180)

    assert session.get.call_args.kwargs["params"]["outputsize"] == "full"
    assert session.get.call_args.kwargs["timeout"] == 15.0


def test_option_chain_for_a_trading_day(adapter, session):
    session.get.return_value = make_response(
        {
            "endpoint": "Historical Options",
            "data": [
                {
                    "contractID": "NVDA240621C00120000",
                    "symbol": "NVDA",
                    "expiration": "2024-06-21",
                    "strike": "120.00",
                    "type": "call",
                    "last": "5.10",
                    "mark": "5.05",
                    "bid": "5.00",
                    "ask": "5.10",
                    "volume": "1520",
                    "open_interest": "8000",
                    "date": "2024-06-03",
                    "implied_volatility": "0.4521",
                    "delta": "0.5312",
                    "gamma": "0.02",
                },
                {"contractID": "", "expiration": "2024-06-21", "strike": "125", "type": "call"},
            ],
        }
    )
    contracts = adapter.get_option_chain("NVDA", as_of=date(2024, 6, 3))

    assert len(contracts) == 1
    contract = contracts[0]
    assert contract.contract_id == "NVDA240621C00120000"
    assert contract.option_type == "call"
    assert contract.days_to_expiry == 18
    assert contract.open_interest == 8000
    assert contract.implied_volatility == pytest.approx(0.4521)
    assert contract.delta == pytest.approx(0.5312)
    assert session.get.call_args.kwargs["params"]["date"] == "2024-06-03"


def test_empty_option_chain_is_not_available(adapter, session):
    session.get.return_value = make_response({"data": []})
    with pytest.raises(DataNotAvailable):
        adapter.get_option_chain("NVDA", as_of=date(2024, 6, 1))


@pytest.mark.parametrize(
    "payload, error",
    [
        ({"Error Message": "Invalid API call. Please retry or visit the documentation."}, DataNotAvailable),
        ({"Error Message": "the parameter apikey is invalid or missing."}, FatalProviderError),
        ({"Information": "This is a premium endpoint."}, FatalProviderError),
        ({"Information": "The demo API key is for demo purposes only."}, FatalProviderError),
        ({"Information": "No data for this date."}, DataNotAvailable),
    ],
)
def test_permanent_api_messages_are_not_retried(adapter, session, payload, error):
    session.get.return_value = make_response(payload)
    with pytest.raises(error):
        adapter.get_option_chain("NVDA", as_of=date(2024, 6, 3))
    assert session.get.call_count == 1


def test_rate_limit_note_is_retried_then_raised(adapter, session, no_backoff_sleep):
    session.get.return_value = make_response({"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."})
    with pytest.raises(RateLimitError):
        adapter.get_quote("NVDA")
    assert session.get.call_count == 3
    assert no_backoff_sleep.call_count == 2


def test_transient_failure_recovers(adapter, session):
    session.get.side_effect = [
        requests.ConnectionError("reset"),
        make_response(status_code=429),
        make_response({"Time Series (Daily)": {"2024-05-31": {"5. adjusted close": "10"}}}),
    ]
    bars = adapter.get_daily_prices("AAPL", 1)
    assert bars[0].adjusted_close == 10.0
    assert session.get.call_count == 3


def test_unauthorized_is_fatal(adapter, session):
    session.get.return_value = make_response(status_code=403)
    with pytest.raises(FatalProviderError):
        adapter.get_quote("NVDA")
    assert session.get.call_count == 1


def test_server_error_exhausts_retries(adapter, session):
    session.get.return_value = make_response(status_code=500)
    with pytest.raises(ProviderError):
        adapter.get_quote("NVDA")
    assert session.get.call_count == 3


def test_live_chain_counts_days_from_today(session):
    adapter = AlphaVantageAdapter(api_key="test-key", session=session, today_provider=lambda: date(2024, 6, 3))
    session.get.return_value = make_response(
        {
            "data": [
                {
                    "contractID": "NVDA240603C00120000",
                    "expiration": "2024-06-03",
                    "strike": "120",
                    "type": "call",
                    "bid": "1.00",
                    "ask": "1.10",
                    "date": "2024-05-31",
                },
                {
                    "contractID": "NVDA240621C00120000",
                    "expiration": "2024-06-21",
                    "strike": "120",
                    "type": "call",
                    "bid": "1.00",
                    "ask": "1.10",
                    "date": "2024-05-31",
                },
            ]
        }
    )
    contracts = adapter.get_option_chain("NVDA")

    assert [contract.days_to_expiry for contract in contracts] == [0, 18]
    assert all(contract.as_of == date(2024, 6, 3) for contract in contracts)
    assert "date" not in session.get.call_args.kwargs["params"]
    assert [contract.contract_id for contract in live_filter(contracts)] == ["NVDA240621C00120000"]


def test_retryable_flags():
    assert RateLimitError("slow down").retryable
    assert ProviderError("timeout").retryable
    assert not DataNotAvailable("missing").retryable
    assert not FatalProviderError("bad key").retryable
