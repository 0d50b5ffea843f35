"""Historical implied-volatility benchmarks and their background runner."""

from .aggregator import (
    DEFAULT_ANALYSIS_WINDOW_DAYS,
    DEFAULT_REQUEST_INTERVAL,
    BenchmarkAggregator,
    generate_trading_days,
    summarize_bucket,
)
from .errors import BackfillCancelled, BackfillInProgressError, EmptyBackfillError
from .runner import BackfillJob, BackfillManager

__all__ = [
    "BackfillCancelled",
    "BackfillInProgressError",
    "BackfillJob",
    "BackfillManager",
    "BenchmarkAggregator",
    "DEFAULT_ANALYSIS_WINDOW_DAYS",
    "DEFAULT_REQUEST_INTERVAL",
    "EmptyBackfillError",
    "generate_trading_days",
    "summarize_bucket",
]
