from __future__ import annotations

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from options_analytics.cache import DailyCache


class Clock:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def clock() -> Clock:
    return Clock(date(2024, 6, 3))


@pytest.fixture
def cache(tmp_path, clock) -> DailyCache:
    return DailyCache(tmp_path, today_provider=clock)


def test_set_and_get_within_the_same_day(cache):
    cache.set("price", "NVDA", {"price": 120.5})
    assert cache.get("price", "NVDA") == {"price": 120.5}
    assert cache.get("price", "AAPL") is None


def test_entries_expire_when_the_date_rolls_over(cache, clock):
    cache.set("hv", "NVDA_30", 41.2)
    clock.day = date(2024, 6, 4)

    assert cache.get("hv", "NVDA_30") is None
    stats = cache.stats("hv")
    assert stats.count == 0
    assert stats.date == date(2024, 6, 3)
    assert stats.is_current is False


def test_get_or_set_computes_once_per_day(cache, clock):
    calls = []

    def compute():
        calls.append(1)
        return 33.3

    assert cache.get_or_set("hv", "AAPL_20", compute) == 33.3
    assert cache.get_or_set("hv", "AAPL_20", compute) == 33.3
    assert len(calls) == 1

    clock.day = date(2024, 6, 4)
    cache.get_or_set("hv", "AAPL_20", compute)
    assert len(calls) == 2


def test_get_or_set_does_not_store_none(cache):
    assert cache.get_or_set("price", "ZZZ", lambda: None) is None
    assert cache.stats("price").count == 0


def test_cache_is_persisted_and_reloaded(tmp_path, clock):
    first = DailyCache(tmp_path, today_provider=clock)
    first.set("price", "MSFT", {"price": 410.0})

    document = json.loads((tmp_path / "price-cache.json").read_text())
    assert document["date"] == "2024-06-03"
    assert document["entries"]["MSFT"]["cached_date"] == "2024-06-03"

    second = DailyCache(tmp_path, today_provider=clock)
    assert second.get("price", "MSFT") == {"price": 410.0}


def test_writing_on_a_new_day_drops_stale_entries(cache, clock, tmp_path):
    cache.set("price", "OLD", 1)
    clock.day = date(2024, 6, 4)
    cache.set("price", "NEW", 2)

    document = json.loads((tmp_path / "price-cache.json").read_text())
    assert set(document["entries"]) == {"NEW"}


def test_clear_empties_namespace(cache):
    cache.set("price", "NVDA", 1)
    cache.set("hv", "NVDA_20", 2)
    cache.clear("price")

    assert cache.get("price", "NVDA") is None
    assert cache.get("hv", "NVDA_20") == 2
    assert cache.stats("price").count == 0


def test_stats_for_empty_namespace(cache):
    stats = cache.stats("hv")
    assert stats.date is None
    assert stats.is_current is False
    assert stats.count == 0


def test_unreadable_file_is_discarded(tmp_path, clock):
    (tmp_path / "price-cache.json").write_text("{not json")
    cache = DailyCache(tmp_path, today_provider=clock)
    assert cache.get("price", "NVDA") is None
    cache.set("price", "NVDA", 5)
    assert cache.get("price", "NVDA") == 5


def test_concurrent_get_or_set_computes_once(cache):
    calls = []
    start = threading.Barrier(8)

    def compute():
        calls.append(1)
        time.sleep(0.05)
        return {"hv": 28.4}

    def worker(_):
        start.wait(5)
        return cache.get_or_set("hv", "NVDA_20", compute)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(worker, range(8)))

    assert len(calls) == 1
    assert results == [{"hv": 28.4}] * 8


def test_concurrent_sets_on_different_keys_all_persist(tmp_path, clock):
    cache = DailyCache(tmp_path, today_provider=clock)
    symbols = [f"SYM{index}" for index in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda symbol: cache.set("price", symbol, {"symbol": symbol}), symbols))

    reloaded = DailyCache(tmp_path, today_provider=clock)
    assert all(reloaded.get("price", symbol) == {"symbol": symbol} for symbol in symbols)
    assert reloaded.stats("price").count == 20


def test_slow_factory_does_not_block_other_keys(cache):
    cache.set("price", "AAPL", {"price": 190.0})
    entered = threading.Event()
    release = threading.Event()

    def slow_quote():
        entered.set()
        release.wait(5)
        return {"price": 120.0}

    worker = threading.Thread(target=cache.get_or_set, args=("price", "NVDA", slow_quote))
    worker.start()
    try:
        assert entered.wait(5)
        assert cache.get("price", "AAPL") == {"price": 190.0}
        assert cache.get("price", "NVDA") is None
    finally:
        release.set()
        worker.join(5)
    assert cache.get("price", "NVDA") == {"price": 120.0}
