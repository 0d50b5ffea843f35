"""Environment aware configuration loader for the analytics service."""

from __future__ import annotations

import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from options_analytics.filters.qualification import FilterConfig
from options_analytics.scoring.config import DEFAULT_SCORING_CONFIG

DEFAULT_STOCKS: Dict[str, str] = {
    "NVDA": "NVIDIA Corporation",
    "MSFT": "Microsoft Corporation",
    "AAPL": "Apple Inc.",
    "AMZN": "Amazon.com Inc.",
    "GOOGL": "Alphabet Inc.",
    "META": "Meta Platforms Inc.",
    "AVGO": "Broadcom Inc.",
    "TSLA": "Tesla Inc.",
    "BRK-B": "Berkshire Hathaway Inc.",
    "JPM": "JPMorgan Chase & Co.",
    "WMT": "Walmart Inc.",
    "LLY": "Eli Lilly and Company",
    "V": "Visa Inc.",
    "ORCL": "Oracle Corporation",
    "MA": "Mastercard Incorporated",
    "NFLX": "Netflix Inc.",
    "XOM": "Exxon Mobil Corporation",
    "COST": "Costco Wholesale Corporation",
    "JNJ": "Johnson & Johnson",
    "HD": "The Home Depot Inc.",
    "BABA": "Alibaba Group Holding Limited",
    "PDD": "PDD Holdings Inc.",
    "NTES": "NetEase Inc.",
    "JD": "JD.com Inc.",
    "TME": "Tencent Music Entertainment Group",
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    "stocks": dict(DEFAULT_STOCKS),
    "watchlists": {
        "default": list(DEFAULT_STOCKS),
    },
    "scoring": copy.deepcopy(DEFAULT_SCORING_CONFIG),
    "filters": FilterConfig().model_dump(),
    "provider": {
        "name": "alphavantage",
        "settings": {},
    },
    "cache": {
        "directory": "data/cache",
    },
    "storage": {
        "backend": "sqlite",
        "sqlite": {
            "path": "data/benchmarks.db",
            "pragmas": {},
        },
    },
    "benchmarks": {
        "symbols": ["NVDA"],
        "analysis_window_days": 126,
        "request_interval_seconds": 0.8,
    },
}

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
ENVIRONMENT_VARIABLE = "APP_ENV"
API_KEY_VARIABLE = "ALPHAVANTAGE_API_KEY"

FILTER_ENVIRONMENT_OVERRIDES: Dict[str, str] = {
    "MIN_DAILY_VOLUME": "min_volume",
    "MIN_OPEN_INTEREST": "min_open_interest",
    "MAX_BID_ASK_SPREAD_PERCENT": "max_spread_percent",
    "MIN_IMPLIED_VOLATILITY_PERCENT": "min_iv_percent",
    "MAX_IMPLIED_VOLATILITY_PERCENT": "max_iv_percent",
}


class ProviderSettings(BaseModel):
    name: str = "alphavantage"
    api_key: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)

    def resolved_api_key(self) -> str:
        return os.getenv(API_KEY_VARIABLE) or self.api_key or "demo"


class CacheSettings(BaseModel):
    directory: str = "data/cache"


class SQLiteSettings(BaseModel):
    path: str = "data/benchmarks.db"
    pragmas: Dict[str, Any] = Field(default_factory=dict)


class StorageSettings(BaseModel):
    backend: str = "sqlite"
    sqlite: SQLiteSettings = Field(default_factory=SQLiteSettings)

    def require_sqlite(self) -> SQLiteSettings:
        if self.backend != "sqlite":
            raise ValueError(f"Unsupported storage backend: {self.backend}")
        return self.sqlite


class BenchmarkSettings(BaseModel):
    symbols: List[str] = Field(default_factory=lambda: ["NVDA"])
    analysis_window_days: int = 126
    request_interval_seconds: float = 0.8

    @field_validator("symbols", mode="before")
    @classmethod
    def _upper_symbols(cls, value: Any) -> List[str]:
        return [str(symbol).upper() for symbol in value or []]


class AppSettings(BaseModel):
    """Fully resolved application settings loaded from YAML."""

    model_config = ConfigDict(frozen=True)

    env: str
    stocks: Dict[str, str]
    watchlists: Dict[str, List[str]]
    scoring: Dict[str, Dict[str, float]]
    filters: FilterConfig
    provider: ProviderSettings
    cache: CacheSettings
    storage: StorageSettings
    benchmarks: BenchmarkSettings

    @field_validator("env")
    @classmethod
    def _normalize_env(cls, value: str) -> str:
        return value.lower()

    @field_validator("watchlists", mode="before")
    @classmethod
    def _coerce_watchlists(cls, value: Mapping[str, Any]) -> Dict[str, List[str]]:
        return {key: list(items or []) for key, items in dict(value or {}).items()}

    def get_watchlist(self, name: str = "default") -> List[str]:
        return list(self.watchlists.get(name, []))


def _deep_merge(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping):
            existing = base.get(key)
            if isinstance(existing, MutableMapping):
                base[key] = _deep_merge(copy.deepcopy(existing), value)
            else:
                base[key] = copy.deepcopy(value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle.read()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping at the root.")
        return data


def _filter_overrides_from_env() -> Dict[str, str]:
    return {
        field: os.environ[variable]
        for variable, field in FILTER_ENVIRONMENT_OVERRIDES.items()
        if os.environ.get(variable)
    }


def _build_settings(env: str) -> AppSettings:
    config_path = CONFIG_DIR / f"{env}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file for environment '{env}' not found at {config_path}")

    merged = copy.deepcopy(DEFAULT_SETTINGS)
    overrides = _load_yaml(config_path)
    merged = _deep_merge(merged, overrides)
    merged = _deep_merge(merged, {"filters": _filter_overrides_from_env()})
    merged["env"] = env
    return AppSettings.model_validate(merged)


@lru_cache(maxsize=None)
def _cached_settings(env: str) -> AppSettings:
    return _build_settings(env)


def get_settings(env: Optional[str] = None) -> AppSettings:
    """Load settings for the requested environment (default: APP_ENV or 'dev')."""

    resolved_env = (env or os.getenv(ENVIRONMENT_VARIABLE, "dev")).strip().lower()
    return _cached_settings(resolved_env)


def reset_settings_cache() -> None:
    """Clear the cached settings, primarily used during tests."""

    _cached_settings.cache_clear()


__all__ = [
    "AppSettings",
    "BenchmarkSettings",
    "CacheSettings",
    "DEFAULT_SETTINGS",
    "DEFAULT_STOCKS",
    "ProviderSettings",
    "SQLiteSettings",
    "StorageSettings",
    "get_settings",
    "reset_settings_cache",
]
