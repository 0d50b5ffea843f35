"""Configuration helpers and service wiring."""

from __future__ import annotations

from typing import Optional

from options_analytics.adapters import MarketDataAdapter, create_adapter
from options_analytics.cache import DailyCache
from options_analytics.scoring.engine import ScoringEngine
from options_analytics.service.analysis import AnalysisService
from options_analytics.storage import SQLiteBenchmarkStore

from .loader import AppSettings, get_settings, reset_settings_cache


def build_adapter(settings: AppSettings) -> MarketDataAdapter:
    provider = settings.provider
    name = provider.name.strip().lower()
    options = dict(provider.settings)
    if name == "alphavantage":
        options.setdefault("api_key", provider.resolved_api_key())
    try:
        return create_adapter(name, **options)
    except KeyError as exc:
        raise ValueError(f"Unsupported market data provider: {name}") from exc


def build_service(settings: Optional[AppSettings] = None) -> AnalysisService:
    """Wire an :class:`AnalysisService` from configuration."""

    settings = settings or get_settings()
    sqlite_settings = settings.storage.require_sqlite()
    return AnalysisService(
        adapter=build_adapter(settings),
        cache=DailyCache(settings.cache.directory),
        store=SQLiteBenchmarkStore(sqlite_settings.path, sqlite_settings.pragmas),
        engine=ScoringEngine(settings.scoring),
        filter_config=settings.filters,
        benchmark_symbols=settings.benchmarks.symbols,
        request_interval=settings.benchmarks.request_interval_seconds,
    )


__all__ = [
    "AppSettings",
    "build_adapter",
    "build_service",
    "get_settings",
    "reset_settings_cache",
]
