"""Adapter implementations for external market data providers."""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Type

from .base import DataNotAvailable, FatalProviderError, MarketDataAdapter, ProviderError, RateLimitError

_ADAPTER_REGISTRY: Dict[str, str] = {
    "alphavantage": "options_analytics.adapters.alphavantage:AlphaVantageAdapter",
    "yfinance": "options_analytics.adapters.yfinance:YFinanceAdapter",
    "synthetic": "options_analytics.adapters.synthetic:SyntheticMarketData",
}


def create_adapter(provider: str, **settings: Any) -> MarketDataAdapter:
    """Instantiate a market data adapter by name.

    Args:
        provider: The lowercase name of the provider to load.
        **settings: Keyword arguments forwarded to the adapter constructor.

    Returns:
        An instance of the requested adapter implementation.

    Raises:
        KeyError: If the provider name is unknown.
    """

    normalized = provider.lower()
    try:
        dotted_path = _ADAPTER_REGISTRY[normalized]
    except KeyError as exc:
        raise KeyError(f"Unknown market data provider: {provider}") from exc

    module_name, class_name = dotted_path.split(":", 1)
    module = import_module(module_name)
    adapter_cls: Type[MarketDataAdapter] = getattr(module, class_name)
    return adapter_cls(**settings)


__all__ = [
    "DataNotAvailable",
    "FatalProviderError",
    "MarketDataAdapter",
    "ProviderError",
    "RateLimitError",
    "create_adapter",
]
