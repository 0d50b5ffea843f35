"""Command line interface for the options analytics service."""

from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd

from options_analytics.benchmarks import BackfillCancelled, BackfillInProgressError, EmptyBackfillError
from options_analytics.config import build_service, get_settings
from options_analytics.models.analysis import OptionsAnalysis
from options_analytics.models.benchmark import BenchmarkProgress
from options_analytics.service.analysis import AnalysisService

LOGGER = logging.getLogger("options_analytics.cli")

DISPLAY_COLUMNS = [
    "expiration",
    "dte",
    "strike",
    "bid",
    "ask",
    "iv",
    "hv",
    "status",
    "buy_call",
    "sell_call",
    "ccas",
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Options analytics: HV, CAS/CCAS scoring and IV benchmarks")
    parser.add_argument("--env", default=None, help="Configuration environment (defaults to APP_ENV or dev)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    hv = subparsers.add_parser("hv", help="Historical volatility for a symbol")
    hv.add_argument("symbol")
    hv.add_argument("--period", type=int, default=30, help="Look-back in trading days")

    analyze = subparsers.add_parser("analyze", help="Score the live option chain for a symbol")
    analyze.add_argument("symbol")
    analyze.add_argument("--type", dest="option_type", choices=["call", "put"], default="call")
    analyze.add_argument("--max-days", type=int, default=None, help="Only contracts expiring within N days")
    analyze.add_argument("--refresh", action="store_true", help="Bypass today's cached price")
    analyze.add_argument("--top", type=int, default=15, help="Number of rows to display")
    analyze.add_argument("--output", type=Path, default=None, help="Write the full table to CSV")

    backfill = subparsers.add_parser("backfill", help="Rebuild the historical IV benchmark for a symbol")
    backfill.add_argument("symbol")
    backfill.add_argument("--window", type=int, default=None, help="Trading days to aggregate")

    subparsers.add_parser("cache-stats", help="Show daily cache status")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def analysis_frame(analysis: OptionsAnalysis) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for item in analysis.options:
        contract = item.contract
        rows.append(
            {
                "expiration": contract.expiration.isoformat(),
                "dte": contract.days_to_expiry,
                "strike": contract.strike,
                "bid": contract.bid,
                "ask": contract.ask,
                "iv": contract.implied_volatility,
                "hv": contract.historical_volatility,
                "status": item.qualification.status,
                "buy_call": item.cas.buy_call.score if item.cas else None,
                "sell_call": item.cas.sell_call.score if item.cas else None,
                "ccas": item.ccas.ccas_score if item.ccas and item.ccas.passed else None,
            }
        )
    return pd.DataFrame(rows, columns=DISPLAY_COLUMNS)


def _run_hv(service: AnalysisService, args: argparse.Namespace) -> int:
    hv = service.get_or_compute_hv(args.symbol, args.period)
    print(f"{args.symbol.upper()} HV({args.period}d): {hv:.2f}%")
    return 0


def _run_analyze(service: AnalysisService, args: argparse.Namespace) -> int:
    analysis = service.analyze_options(
        args.symbol,
        option_type=args.option_type,
        max_days=args.max_days,
        refresh=args.refresh,
    )
    stock = analysis.stock
    print(f"{analysis.symbol} {stock.price:.2f} ({analysis.data_source})")
    frame = analysis_frame(analysis)
    if frame.empty:
        print("No contracts found.")
        return 0
    with pd.option_context("display.max_columns", None, "display.width", 160):
        print(frame.head(args.top).to_string(index=False))
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(args.output, index=False)
        print(f"Saved {len(frame)} rows to {args.output}")
    return 0


def _run_backfill(service: AnalysisService, args: argparse.Namespace, default_window: int) -> int:
    window = args.window or default_window
    cancel_event = threading.Event()

    def report(event: BenchmarkProgress) -> None:
        LOGGER.info("[%d/%d] %s %s %s", event.current, event.total, event.trading_day, event.status, event.message)

    try:
        snapshot = service.run_benchmark_backfill(args.symbol, window, progress=report, cancel_event=cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        print("Backfill interrupted; stored benchmark left unchanged.")
        return 130
    except (BackfillCancelled, BackfillInProgressError, EmptyBackfillError) as exc:
        print(str(exc))
        return 1

    rows = [
        {"bucket": bucket.value, **stats.model_dump()}
        for bucket, stats in snapshot.buckets.items()
    ]
    print(pd.DataFrame(rows).to_string(index=False))
    print(f"{snapshot.data_points}/{snapshot.analysis_window_days} trading days, {snapshot.total_samples} samples")
    return 0


def _run_cache_stats(service: AnalysisService) -> int:
    for namespace, stats in service.cache_stats().items():
        current = "current" if stats.is_current else "stale"
        print(f"{namespace}: {stats.count} entries ({stats.date or 'empty'}, {current})")
    return 0


def run_from_args(argv: Sequence[str] | None = None, service: AnalysisService | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings(args.env)
    service = service or build_service(settings)

    if args.command == "hv":
        return _run_hv(service, args)
    if args.command == "analyze":
        return _run_analyze(service, args)
    if args.command == "backfill":
        return _run_backfill(service, args, settings.benchmarks.analysis_window_days)
    if args.command == "cache-stats":
        return _run_cache_stats(service)
    parser.error("Unknown command")
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return run_from_args(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
