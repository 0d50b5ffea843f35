"""Historical implied-volatility benchmark built from day-by-day option chains.

For each trading day in the analysis window the aggregator pulls that day's
full chain, classifies every contract by days to expiry (measured from the
trading day) and records its IV. The per-bucket volume-weighted averages
form a :class:`BenchmarkSnapshot` the live analysis compares against.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Protocol

import numpy as np

from options_analytics.adapters.base import FatalProviderError, ProviderError
from options_analytics.models.benchmark import (
    BenchmarkProgress,
    BenchmarkRun,
    BenchmarkSnapshot,
    BucketStats,
    DTEBucket,
    IVSample,
)
from options_analytics.models.option import OptionContract

from .errors import BackfillCancelled

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_WINDOW_DAYS = 126
DEFAULT_REQUEST_INTERVAL = 0.8

ProgressCallback = Callable[[BenchmarkProgress], None]


class ChainSource(Protocol):
    def get_option_chain(self, symbol: str, as_of: Optional[date] = None) -> List[OptionContract]:
        ...


def generate_trading_days(end: date, count: int) -> List[date]:
    """Return the ``count`` most recent weekdays up to and including ``end``, oldest first.

    Exchange holidays are not excluded; a holiday simply yields an empty or
    failed fetch that is skipped.
    """

    days: List[date] = []
    current = end
    while len(days) < count:
        if current.weekday() < 5:
            days.append(current)
        current -= timedelta(days=1)
    days.reverse()
    return days


def summarize_bucket(samples: Iterable[IVSample]) -> BucketStats:
    """Volume-weighted mean IV plus counts and range for one bucket."""

    samples = list(samples)
    if not samples:
        return BucketStats()

    ivs = np.array([sample.iv for sample in samples], dtype=float)
    weights = np.array([max(sample.weight, 1) for sample in samples], dtype=float)
    return BucketStats(
        average_iv=float(np.average(ivs, weights=weights)),
        sample_count=len(samples),
        valid_iv_count=int(np.count_nonzero(ivs > 0)),
        min_iv=float(ivs.min()),
        max_iv=float(ivs.max()),
    )


class BenchmarkAggregator:
    """Drives a sequential, rate-limited backfill over historical chains."""

    def __init__(
        self,
        chain_source: ChainSource,
        request_interval: float = DEFAULT_REQUEST_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        today_provider: Callable[[], date] | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = chain_source
        self._request_interval = max(0.0, request_interval)
        self._sleep = sleep
        self._today_provider = today_provider or date.today
        self._now_provider = now_provider or datetime.utcnow

    def run(
        self,
        symbol: str,
        analysis_window_days: int = DEFAULT_ANALYSIS_WINDOW_DAYS,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BenchmarkRun:
        """Fetch every trading day in the window and aggregate IV per DTE bucket.

        Raises:
            BackfillCancelled: ``cancel_event`` was set between two days.
            FatalProviderError: the provider failed permanently before any
                day succeeded.
        """

        trading_days = generate_trading_days(self._today_provider(), analysis_window_days)
        total = len(trading_days)
        samples: Dict[DTEBucket, List[IVSample]] = {bucket: [] for bucket in DTEBucket}
        data_points = 0

        logger.info("Starting %s benchmark backfill over %d trading days", symbol, total)
        for index, trading_day in enumerate(trading_days, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Benchmark backfill for %s cancelled at day %d/%d", symbol, index, total)
                raise BackfillCancelled(f"Backfill for {symbol} cancelled after {index - 1} of {total} days")

            if index > 1 and self._request_interval:
                self._sleep(self._request_interval)

            try:
                chain = self._source.get_option_chain(symbol, as_of=trading_day)
            except FatalProviderError:
                if data_points == 0:
                    logger.error("Aborting %s backfill: provider failed permanently on %s", symbol, trading_day)
                    raise
                logger.warning("Permanent provider failure for %s on %s; skipping day", symbol, trading_day)
                self._emit(progress, index, total, symbol, "error", trading_day, "provider error")
                continue
            except ProviderError as exc:
                logger.warning("Skipping %s on %s: %s", symbol, trading_day, exc)
                self._emit(progress, index, total, symbol, "skipped", trading_day, str(exc))
                continue

            added = self._collect(chain, trading_day, samples)
            data_points += 1
            self._emit(progress, index, total, symbol, "processing", trading_day, f"{added} contracts")

        snapshot = BenchmarkSnapshot(
            symbol=symbol,
            buckets={bucket: summarize_bucket(items) for bucket, items in samples.items()},
            analysis_window_days=analysis_window_days,
            data_points=data_points,
            total_samples=sum(len(items) for items in samples.values()),
            last_updated=self._now_provider(),
        )
        logger.info(
            "Finished %s benchmark: %d/%d days processed, %d samples",
            symbol,
            data_points,
            total,
            snapshot.total_samples,
        )
        return BenchmarkRun(snapshot=snapshot, samples=samples)

    @staticmethod
    def _collect(
        chain: Iterable[OptionContract],
        trading_day: date,
        samples: Dict[DTEBucket, List[IVSample]],
    ) -> int:
        added = 0
        for contract in chain:
            days = (contract.expiration - trading_day).days
            bucket = DTEBucket.for_days(days, historical=True)
            if bucket is None:
                continue
            samples[bucket].append(
                IVSample(
                    iv=contract.implied_volatility,
                    weight=max(contract.volume, 1),
                    days_to_expiry=days,
                    trading_day=trading_day,
                )
            )
            added += 1
        return added

    @staticmethod
    def _emit(
        progress: ProgressCallback | None,
        current: int,
        total: int,
        symbol: str,
        status: str,
        trading_day: date,
        message: str,
    ) -> None:
        if progress is None:
            return
        progress(
            BenchmarkProgress(
                current=current,
                total=total,
                symbol=symbol,
                status=status,
                trading_day=trading_day,
                message=message,
            )
        )


__all__ = [
    "BenchmarkAggregator",
    "ChainSource",
    "DEFAULT_ANALYSIS_WINDOW_DAYS",
    "DEFAULT_REQUEST_INTERVAL",
    "generate_trading_days",
    "summarize_bucket",
]
