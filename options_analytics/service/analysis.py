"""Request-level orchestration: price, chain, HV join, qualification, scoring.

The service owns no long-lived state beyond its collaborators. Quotes and
historical volatility are read through the :class:`DailyCache` so the
provider is hit at most once per symbol (and per HV period) per day.
Provider outages degrade to synthetic data flagged ``fallback`` instead of
failing the request.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from options_analytics.adapters.base import MarketDataAdapter, ProviderError
from options_analytics.adapters.synthetic import SyntheticMarketData
from options_analytics.benchmarks.aggregator import (
    DEFAULT_ANALYSIS_WINDOW_DAYS,
    DEFAULT_REQUEST_INTERVAL,
    BenchmarkAggregator,
    ProgressCallback,
)
from options_analytics.benchmarks.errors import BackfillInProgressError, EmptyBackfillError
from options_analytics.cache import HV_NAMESPACE, PRICE_NAMESPACE, CacheStats, DailyCache
from options_analytics.filters.qualification import FilterConfig, evaluate
from options_analytics.math.volatility import (
    InsufficientDataError,
    compute_historical_volatility,
    default_hv,
    hv_period_for_dte,
)
from options_analytics.models.analysis import AnalyzedOption, DataSource, OptionsAnalysis
from options_analytics.models.benchmark import BenchmarkContext, BenchmarkSnapshot, DTEBucket
from options_analytics.models.option import OptionContract, Quote
from options_analytics.models.score import CASResult, CCASResult, QualificationResult
from options_analytics.scoring.engine import ScoringEngine
from options_analytics.storage.base import BenchmarkStore, StorageError

logger = logging.getLogger(__name__)

CACHE_NAMESPACES = (PRICE_NAMESPACE, HV_NAMESPACE)


class NoContractsError(LookupError):
    """Raised when a live chain has no contracts left after the live filter."""


def live_filter(
    contracts: Iterable[OptionContract],
    option_type: str = "call",
    max_days: Optional[int] = None,
) -> List[OptionContract]:
    """Keep unexpired, quoted contracts of ``option_type`` within ``max_days``."""

    selected: List[OptionContract] = []
    for contract in contracts:
        days = contract.days_to_expiry or 0
        if days <= 0 or contract.option_type != option_type:
            continue
        if max_days is not None and days > max_days:
            continue
        if contract.bid <= 0 and contract.ask <= 0:
            continue
        selected.append(contract)
    return selected


class AnalysisService:
    """Coordinates providers, caches, filters, scoring and benchmarks for one symbol at a time."""

    def __init__(
        self,
        adapter: MarketDataAdapter,
        cache: DailyCache,
        store: BenchmarkStore,
        engine: ScoringEngine | None = None,
        filter_config: FilterConfig | None = None,
        fallback: SyntheticMarketData | None = None,
        benchmark_symbols: Sequence[str] = ("NVDA",),
        request_interval: float = DEFAULT_REQUEST_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self.adapter = adapter
        self.cache = cache
        self.store = store
        self.engine = engine or ScoringEngine()
        self.filter_config = filter_config or FilterConfig()
        self.fallback = fallback or SyntheticMarketData()
        self.benchmark_symbols = {symbol.upper() for symbol in benchmark_symbols}
        self._request_interval = request_interval
        self._sleep = sleep
        self._today_provider = today_provider or date.today
        self._symbol_locks: Dict[str, threading.Lock] = {}
        self._symbol_locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Prices and historical volatility
    # ------------------------------------------------------------------
    def get_quote(self, symbol: str, refresh: bool = False) -> Quote:
        """Return today's quote, fetching it once per day; synthetic when the provider fails."""

        symbol = symbol.upper()

        def fetch() -> Optional[dict]:
            try:
                return self.adapter.get_quote(symbol).to_cache()
            except ProviderError as exc:
                logger.warning("Using fallback price for %s: %s", symbol, exc)
                return None

        if refresh:
            payload = fetch()
            if payload is not None:
                self.cache.set(PRICE_NAMESPACE, symbol, payload)
        else:
            payload = self.cache.get_or_set(PRICE_NAMESPACE, symbol, fetch)

        if payload is None:
            return self.fallback.get_quote(symbol)
        return Quote.model_validate(payload)

    def get_quotes(self, symbols: Iterable[str]) -> List[Quote]:
        return [self.get_quote(symbol) for symbol in symbols]

    def get_or_compute_hv(self, symbol: str, period: int) -> float:
        """Return the annualized HV (percent) for ``symbol`` over ``period`` trading days.

        Never raises: provider failures and short histories fall back to the
        static per-symbol default, which is not cached so a later request can
        still compute the real value.
        """

        symbol = symbol.upper()

        def compute() -> Optional[float]:
            try:
                prices = self.adapter.get_daily_prices(symbol, period)
                return round(compute_historical_volatility(prices, period), 2)
            except (ProviderError, InsufficientDataError) as exc:
                logger.warning("Using default HV for %s (%d days): %s", symbol, period, exc)
                return None

        hv = self.cache.get_or_set(HV_NAMESPACE, f"{symbol}_{period}", compute)
        return float(hv) if hv is not None else default_hv(symbol)

    def attach_historical_volatility(self, symbol: str, contracts: Iterable[OptionContract]) -> List[OptionContract]:
        """Join each contract with the HV matching its tenor, computing each period once."""

        by_period: Dict[int, float] = {}
        joined: List[OptionContract] = []
        for contract in contracts:
            period = hv_period_for_dte(contract.days_to_expiry or 0)
            if period not in by_period:
                by_period[period] = self.get_or_compute_hv(symbol, period)
            joined.append(
                contract.model_copy(update={"historical_volatility": by_period[period], "hv_period": period})
            )
        return joined

    # ------------------------------------------------------------------
    # Qualification and scoring
    # ------------------------------------------------------------------
    def qualify(self, contract: OptionContract, config: FilterConfig | None = None) -> QualificationResult:
        return evaluate(contract, config or self.filter_config)

    def score_cas(self, contract: OptionContract, peers: Iterable[OptionContract]) -> CASResult:
        return self.engine.score_cas(contract, peers)

    def score_ccas(self, contract: OptionContract, stock_price: float) -> CCASResult:
        return self.engine.score_ccas(contract, stock_price)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def analyze_options(
        self,
        symbol: str,
        option_type: str = "call",
        max_days: Optional[int] = None,
        refresh: bool = False,
    ) -> OptionsAnalysis:
        """Build the scored view of ``symbol``'s live chain."""

        symbol = symbol.upper()
        quote = self.get_quote(symbol, refresh=refresh)
        data_source: DataSource = "fallback" if quote.is_fallback else "real-time"

        try:
            contracts = live_filter(self.adapter.get_option_chain(symbol), option_type, max_days)
            if not contracts:
                raise NoContractsError(f"No live {option_type} contracts for {symbol}")
        except (ProviderError, NoContractsError) as exc:
            logger.warning("Using fallback option chain for %s: %s", symbol, exc)
            data_source = "fallback"
            chain = self.fallback.get_option_chain(symbol, as_of=self._today_provider(), stock_price=quote.price)
            contracts = live_filter(chain, option_type, max_days)

        contracts = self.attach_historical_volatility(symbol, contracts)
        qualifications = [self.qualify(contract) for contract in contracts]
        snapshot = self._benchmark_for(symbol)

        qualified_calls = [
            contract
            for contract, qualification in zip(contracts, qualifications)
            if qualification.is_qualified and contract.option_type == "call"
        ]

        analyzed: List[AnalyzedOption] = []
        for contract, qualification in zip(contracts, qualifications):
            cas = ccas = None
            if qualification.is_qualified and contract.option_type == "call":
                cas = self.score_cas(contract, qualified_calls)
                ccas = self.score_ccas(contract, quote.price)
            analyzed.append(
                AnalyzedOption(
                    contract=contract,
                    qualification=qualification,
                    cas=cas,
                    ccas=ccas,
                    summary=self.engine.summarize(cas, ccas),
                    benchmark=self.benchmark_context(contract, snapshot) if snapshot else None,
                )
            )

        analyzed.sort(key=lambda item: (item.buy_call_score, item.qualification.is_qualified), reverse=True)
        logger.info(
            "Analyzed %d %s contracts for %s (%d qualified, source=%s)",
            len(analyzed),
            option_type,
            symbol,
            sum(1 for item in analyzed if item.qualification.is_qualified),
            data_source,
        )
        return OptionsAnalysis(
            symbol=symbol,
            stock=quote,
            options=analyzed,
            data_source=data_source,
            benchmark_updated=snapshot.last_updated if snapshot else None,
        )

    # ------------------------------------------------------------------
    # Benchmarks
    # ------------------------------------------------------------------
    def run_benchmark_backfill(
        self,
        symbol: str,
        window_days: int = DEFAULT_ANALYSIS_WINDOW_DAYS,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BenchmarkSnapshot:
        """Run a full backfill and replace the stored benchmark with its result.

        Nothing is written unless the run completes with at least one trading
        day of data.
        """

        symbol = symbol.upper()
        lock = self._symbol_lock(symbol)
        if not lock.acquire(blocking=False):
            raise BackfillInProgressError(f"A backfill for {symbol} is already running")
        try:
            aggregator = BenchmarkAggregator(
                self.adapter,
                request_interval=self._request_interval,
                today_provider=self._today_provider,
                sleep=self._sleep,
            )
            run = aggregator.run(symbol, window_days, progress=progress, cancel_event=cancel_event)
            if run.snapshot.data_points == 0:
                logger.warning("Keeping stored %s benchmark: no trading day in the window returned data", symbol)
                raise EmptyBackfillError(f"No trading day returned option data for {symbol}")
            self.store.save(run.snapshot, run.samples)
            return run.snapshot
        finally:
            lock.release()

    def load_latest_benchmark(self, symbol: str) -> Optional[BenchmarkSnapshot]:
        return self.store.load(symbol.upper())

    @staticmethod
    def benchmark_context(contract: OptionContract, snapshot: BenchmarkSnapshot) -> Optional[BenchmarkContext]:
        bucket = DTEBucket.for_days(contract.days_to_expiry or 0)
        if bucket is None:
            return None
        stats = snapshot.bucket(bucket)
        deviation = None
        if stats.average_iv > 0:
            deviation = round((contract.implied_volatility - stats.average_iv) / stats.average_iv * 100, 2)
        return BenchmarkContext(
            bucket=bucket,
            benchmark_iv=stats.average_iv,
            current_iv=contract.implied_volatility,
            deviation_pct=deviation,
            benchmark_updated=snapshot.last_updated,
        )

    def _benchmark_for(self, symbol: str) -> Optional[BenchmarkSnapshot]:
        if symbol not in self.benchmark_symbols:
            return None
        try:
            return self.store.load(symbol)
        except StorageError as exc:
            logger.warning("Benchmark for %s unavailable: %s", symbol, exc)
            return None

    def _symbol_lock(self, symbol: str) -> threading.Lock:
        with self._symbol_locks_guard:
            return self._symbol_locks.setdefault(symbol, threading.Lock())

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------
    def cache_stats(self) -> Dict[str, CacheStats]:
        return {namespace: self.cache.stats(namespace) for namespace in CACHE_NAMESPACES}

    def clear_cache(self, namespace: str) -> None:
        if namespace not in CACHE_NAMESPACES:
            raise KeyError(f"Unknown cache namespace: {namespace}")
        self.cache.clear(namespace)


__all__ = ["AnalysisService", "NoContractsError", "live_filter"]
