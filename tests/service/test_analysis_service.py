from __future__ import annotations

import threading
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from conftest import TODAY, make_contract, make_price_bars
from options_analytics.adapters.base import DataNotAvailable, MarketDataAdapter, ProviderError
from options_analytics.adapters.synthetic import SyntheticMarketData
from options_analytics.benchmarks import BackfillCancelled, BackfillInProgressError, EmptyBackfillError
from options_analytics.cache import DailyCache
from options_analytics.models.benchmark import BenchmarkSnapshot, BucketStats, DTEBucket
from options_analytics.models.option import Quote
from options_analytics.service import AnalysisService, live_filter
from options_analytics.storage import SQLiteBenchmarkStore, StorageError


class FakeAdapter(MarketDataAdapter):
    def __init__(self):
        self.quote_calls = 0
        self.price_calls = 0
        self.chain_calls = []
        self.quote_error = None
        self.price_error = None
        self.chain_error = None
        self.chain = None

    @property
    def name(self):
        return "fake"

    def get_quote(self, symbol):
        self.quote_calls += 1
        if self.quote_error:
            raise self.quote_error
        return Quote(symbol=symbol, price=100.0)

    def get_daily_prices(self, symbol, lookback):
        self.price_calls += 1
        if self.price_error:
            raise self.price_error
        return make_price_bars([100.0 if index % 2 == 0 else 102.0 for index in range(lookback + 1)])

    def get_option_chain(self, symbol, as_of=None):
        self.chain_calls.append(as_of)
        if self.chain_error:
            raise self.chain_error
        if self.chain is not None:
            return list(self.chain)
        day = as_of or TODAY
        expiration = day + timedelta(days=25)
        return [
            make_contract(contract_id="c105", symbol=symbol, strike=105.0, expiration=expiration, as_of=day, ask=4.0, bid=3.9, greeks={"delta": 0.55}),
            make_contract(contract_id="c115", symbol=symbol, strike=115.0, expiration=expiration, as_of=day, ask=2.0, bid=1.9, greeks={"delta": 0.35}),
            make_contract(contract_id="c125", symbol=symbol, strike=125.0, expiration=expiration, as_of=day, ask=0.8, bid=0.75, greeks={"delta": 0.18}),
            make_contract(contract_id="thin", symbol=symbol, strike=130.0, expiration=expiration, as_of=day, volume=5),
            make_contract(contract_id="put", symbol=symbol, option_type="put", strike=95.0, expiration=expiration, as_of=day),
            make_contract(contract_id="expired", symbol=symbol, expiration=day - timedelta(days=1), as_of=day),
        ]


class Clock:
    def __init__(self, day):
        self.day = day

    def __call__(self):
        return self.day


@pytest.fixture
def clock():
    return Clock(TODAY)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def store(tmp_path):
    return SQLiteBenchmarkStore(tmp_path / "benchmarks.db")


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def service(tmp_path, adapter, store, clock, sleep):
    return AnalysisService(
        adapter=adapter,
        cache=DailyCache(tmp_path / "cache", today_provider=clock),
        store=store,
        fallback=SyntheticMarketData(seed=5, today_provider=clock),
        benchmark_symbols=["nvda"],
        sleep=sleep,
        today_provider=clock,
    )


def test_live_filter():
    chain = FakeAdapter().get_option_chain("NVDA")
    assert [contract.contract_id for contract in live_filter(chain)] == ["c105", "c115", "c125", "thin"]
    assert [contract.contract_id for contract in live_filter(chain, "put")] == ["put"]
    assert live_filter(chain, max_days=10) == []
    assert live_filter([make_contract(bid=0.0, ask=0.0)]) == []


def test_quote_is_fetched_once_per_day(service, adapter, clock):
    assert service.get_quote("nvda").price == 100.0
    service.get_quote("NVDA")
    assert adapter.quote_calls == 1

    service.get_quote("NVDA", refresh=True)
    assert adapter.quote_calls == 2

    clock.day = TODAY + timedelta(days=1)
    service.get_quote("NVDA")
    assert adapter.quote_calls == 3


def test_failed_quote_falls_back_without_caching(service, adapter):
    adapter.quote_error = ProviderError("down")
    quote = service.get_quote("NVDA")
    assert quote.is_fallback
    assert service.cache_stats()["price"].count == 0

    adapter.quote_error = None
    assert not service.get_quote("NVDA").is_fallback


def test_hv_is_computed_once_per_symbol_and_period(service, adapter):
    first = service.get_or_compute_hv("nvda", 20)
    assert service.get_or_compute_hv("NVDA", 20) == first
    assert adapter.price_calls == 1
    assert first == round(first, 2)
    assert first > 0

    service.get_or_compute_hv("NVDA", 30)
    assert adapter.price_calls == 2


def test_hv_default_is_not_cached(service, adapter):
    adapter.price_error = DataNotAvailable("no history")
    assert service.get_or_compute_hv("NVDA", 20) == 45.0
    assert service.get_or_compute_hv("ZZZZ", 20) == 25.0

    adapter.price_error = None
    assert service.get_or_compute_hv("NVDA", 20) != 45.0
    assert service.cache_stats()["hv"].count == 1


def test_analyze_options_scores_qualified_calls(service, adapter):
    analysis = service.analyze_options("nvda")

    assert analysis.symbol == "NVDA"
    assert analysis.data_source == "real-time"
    assert [item.contract.contract_id for item in analysis.options][-1] == "thin"
    assert len(analysis.options) == 4
    assert len(analysis.qualified) == 3

    scores = [item.buy_call_score for item in analysis.options]
    assert scores == sorted(scores, reverse=True)
    best = analysis.options[0]
    assert best.cas.buy_call.score_spec == 100
    assert best.cas.metadata.same_expiry_count == 3
    assert best.contract.hv_period == 30
    assert best.contract.historical_volatility == service.get_or_compute_hv("NVDA", 30)
    assert best.summary.buy_call is not None

    thin = analysis.options[-1]
    assert thin.cas is None
    assert thin.qualification.status == "insufficient liquidity"
    # HV for the single tenor was fetched once.
    assert adapter.price_calls == 1


def test_provider_outage_uses_fallback_chain(service, adapter):
    adapter.chain_error = ProviderError("timeout")
    analysis = service.analyze_options("AAPL")

    assert analysis.data_source == "fallback"
    assert analysis.options
    assert all(item.contract.option_type == "call" for item in analysis.options)
    assert {item.contract.strike for item in analysis.options} == {85, 90, 95, 100, 105, 110, 115}


def test_empty_live_chain_uses_fallback(service, adapter):
    adapter.chain = [make_contract(option_type="put")]
    assert service.analyze_options("AAPL").data_source == "fallback"


def test_fallback_quote_marks_analysis_as_fallback(service, adapter):
    adapter.quote_error = ProviderError("down")
    assert service.analyze_options("NVDA").data_source == "fallback"


def test_benchmark_context_for_benchmark_symbols(service, store):
    store.save(
        BenchmarkSnapshot(
            symbol="NVDA",
            buckets={DTEBucket.SHORT: BucketStats(average_iv=0.25, sample_count=10, valid_iv_count=10)},
            analysis_window_days=126,
            data_points=126,
            total_samples=10,
        )
    )
    analysis = service.analyze_options("NVDA")
    context = analysis.options[0].benchmark
    assert context.bucket == DTEBucket.SHORT
    assert context.benchmark_iv == 0.25
    assert context.deviation_pct == 20.0
    assert analysis.benchmark_updated is not None

    assert service.analyze_options("AAPL").options[0].benchmark is None


def test_benchmark_context_without_bucket_data():
    snapshot = BenchmarkSnapshot(symbol="NVDA", analysis_window_days=126)
    context = AnalysisService.benchmark_context(make_contract(), snapshot)
    assert context.benchmark_iv == 0.0
    assert context.deviation_pct is None
    assert AnalysisService.benchmark_context(make_contract(expiration=TODAY), snapshot) is None


def test_backfill_persists_snapshot(service, adapter, store, sleep):
    events = []
    snapshot = service.run_benchmark_backfill("nvda", window_days=3, progress=events.append)

    assert snapshot.data_points == 3
    assert store.load("NVDA") == snapshot
    assert store.load_samples("NVDA")[DTEBucket.SHORT]
    assert len(events) == 3
    assert adapter.chain_calls == [date(2024, 5, 30), date(2024, 5, 31), date(2024, 6, 3)]
    assert sleep.call_count == 2


def test_cancelled_backfill_persists_nothing(service, store):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(BackfillCancelled):
        service.run_benchmark_backfill("NVDA", window_days=3, cancel_event=cancel)
    assert store.load("NVDA") is None



def test_backfill_without_any_data_keeps_stored_benchmark(service, adapter, store):
    store.save(
        BenchmarkSnapshot(
            symbol="NVDA",
            buckets={DTEBucket.SHORT: BucketStats(average_iv=0.4, sample_count=5, valid_iv_count=5)},
            analysis_window_days=126,
            data_points=126,
            total_samples=5,
        )
    )
    adapter.chain_error = DataNotAvailable("rate limited all day")
    events = []

    with pytest.raises(EmptyBackfillError):
        service.run_benchmark_backfill("NVDA", window_days=3, progress=events.append)

    assert [event.status for event in events] == ["skipped", "skipped", "skipped"]
    stored = store.load("NVDA")
    assert stored.data_points == 126
    assert stored.bucket(DTEBucket.SHORT).average_iv == 0.4


def test_unreadable_benchmark_does_not_fail_analysis(service):
    service.store = MagicMock()
    service.store.load.side_effect = StorageError("corrupt row")
    analysis = service.analyze_options("NVDA")
    assert analysis.options
    assert analysis.benchmark_updated is None
    assert all(item.benchmark is None for item in analysis.options)

def test_concurrent_backfill_for_same_symbol_is_rejected(service):
    lock = service._symbol_lock("NVDA")
    lock.acquire()
    try:
        with pytest.raises(BackfillInProgressError):
            service.run_benchmark_backfill("nvda", window_days=2)
    finally:
        lock.release()
    assert service.run_benchmark_backfill("NVDA", window_days=2).data_points == 2


def test_cache_administration(service):
    service.get_quote("NVDA")
    assert service.cache_stats()["price"].count == 1
    service.clear_cache("price")
    assert service.cache_stats()["price"].count == 0
    with pytest.raises(KeyError):
        service.clear_cache("quotes")
