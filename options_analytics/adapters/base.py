"""Core abstractions for market data adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from options_analytics.models.option import OptionContract, PriceBar, Quote


class ProviderError(Exception):
    """Base exception raised for adapter related failures.

    ``retryable`` is ``False`` when repeating the same request would fail the
    same way, so adapters give up on it immediately.
    """

    retryable = True


class RateLimitError(ProviderError):
    """Raised when a provider reports rate limiting errors."""


class DataNotAvailable(ProviderError):
    """Raised when requested data is not available from a provider."""

    retryable = False


class FatalProviderError(ProviderError):
    """Raised for failures that retrying cannot fix (bad key, premium-only endpoint)."""

    retryable = False


class MarketDataAdapter(ABC):
    """Abstract base class for fetching quotes, daily prices and option chains."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable provider name."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """Return the latest price snapshot for ``symbol``."""

    @abstractmethod
    def get_daily_prices(self, symbol: str, lookback: int) -> List[PriceBar]:
        """Return at least ``lookback`` daily adjusted closes, newest first when available."""

    @abstractmethod
    def get_option_chain(self, symbol: str, as_of: Optional[date] = None) -> List[OptionContract]:
        """Return every contract quoted on ``as_of`` (the latest trading day when omitted)."""


__all__ = [
    "DataNotAvailable",
    "FatalProviderError",
    "MarketDataAdapter",
    "ProviderError",
    "RateLimitError",
]
