"""Adapter implementation backed by the public yfinance client."""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from datetime import date, datetime
from typing import Any, Callable, List, Optional

import pandas as pd
import yfinance as yf
from pydantic import ValidationError

from options_analytics.models.option import OptionContract, PriceBar, Quote

from .base import DataNotAvailable, MarketDataAdapter, ProviderError

logger = logging.getLogger(__name__)


class OperationTimeout(Exception):
    """Raised when operation exceeds timeout."""


def run_with_timeout(func: Callable[[], Any], timeout_seconds: float) -> Any:
    """Run a function with a timeout using threading.

    This is more reliable than signal-based timeouts, especially in worker threads.
    """
    result_container: List[Any] = []
    exception_container: List[Exception] = []

    def wrapper():
        try:
            result_container.append(func())
        except Exception as e:
            exception_container.append(e)

    thread = threading.Thread(target=wrapper, daemon=True)
    thread.start()
    thread.join(timeout=timeout_seconds)

    if thread.is_alive():
        raise OperationTimeout(f"Operation timed out after {timeout_seconds} seconds")

    if exception_container:
        raise exception_container[0]

    if result_container:
        return result_container[0]

    raise OperationTimeout("Operation completed but returned no result")


class YFinanceAdapter(MarketDataAdapter):
    """Fetch live quotes, daily closes and the current options chain from Yahoo Finance.

    Yahoo only serves the chain as it trades today, so historical ``as_of``
    requests raise :class:`DataNotAvailable`.
    """

    def __init__(
        self,
        ticker_factory: Callable[[str], yf.Ticker] | None = None,
        max_retries: int = 3,
        base_delay: float = 0.75,
        max_delay: float = 4.0,
        jitter: float = 0.3,
        timeout_seconds: float = 30,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self._ticker_factory = ticker_factory or yf.Ticker
        self._max_retries = max(1, max_retries)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._jitter = jitter
        self._timeout_seconds = timeout_seconds
        self._today_provider = today_provider or date.today

    @property
    def name(self) -> str:
        return "yfinance"

    def get_quote(self, symbol: str) -> Quote:
        ticker = self._ticker_factory(symbol)
        history = self._retry(lambda: ticker.history(period="5d", interval="1d"), context=f"fetch quote for {symbol}")
        if not isinstance(history, pd.DataFrame) or history.empty:
            raise DataNotAvailable(f"No recent prices returned for {symbol}")

        last = history.dropna(subset=["Close"]).iloc[-1]
        price = self._fast_price(ticker)
        timestamp = history.dropna(subset=["Close"]).index[-1]
        return Quote(
            symbol=symbol,
            price=price if price is not None else float(last["Close"]),
            open=_number(last.get("Open")),
            high=_number(last.get("High")),
            low=_number(last.get("Low")),
            volume=int(_number(last.get("Volume"))),
            timestamp=pd.Timestamp(timestamp).isoformat(),
        )

    def get_daily_prices(self, symbol: str, lookback: int) -> List[PriceBar]:
        ticker = self._ticker_factory(symbol)
        # Calendar days; weekends and holidays eat roughly a third of the range.
        period_days = max(10, int(lookback * 1.6) + 10)
        history = self._retry(
            lambda: ticker.history(period=f"{period_days}d", interval="1d", auto_adjust=True),
            context=f"fetch daily prices for {symbol}",
        )
        if not isinstance(history, pd.DataFrame) or history.empty:
            raise DataNotAvailable(f"No daily prices returned for {symbol}")

        closes = history["Close"].dropna()
        bars = [
            PriceBar(trade_date=pd.Timestamp(index).date(), adjusted_close=float(value))
            for index, value in closes.items()
        ]
        bars.reverse()
        return bars[: lookback + 1]

    def get_option_chain(self, symbol: str, as_of: Optional[date] = None) -> List[OptionContract]:
        today = self._today_provider()
        if as_of is not None and as_of != today:
            raise DataNotAvailable(f"yfinance does not serve historical option chains ({symbol} {as_of})")

        ticker = self._ticker_factory(symbol)
        expirations = self._retry(lambda: ticker.options, context=f"fetch expirations for {symbol}")
        contracts: List[OptionContract] = []
        for raw in expirations or ():
            try:
                expiration = datetime.strptime(raw, "%Y-%m-%d").date()
            except ValueError:
                continue
            option_chain = self._retry(
                lambda: ticker.option_chain(raw),
                context=f"fetch options chain for {symbol} {raw}",
            )
            for option_type, frame in (("call", getattr(option_chain, "calls", None)), ("put", getattr(option_chain, "puts", None))):
                if frame is None or frame.empty:
                    continue
                contracts.extend(self._frame_to_contracts(frame, symbol, option_type, expiration, today))

        if not contracts:
            raise DataNotAvailable(f"No option contracts returned for {symbol}")
        return contracts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _frame_to_contracts(
        self, frame: pd.DataFrame, symbol: str, option_type: str, expiration: date, today: date
    ) -> List[OptionContract]:
        contracts: List[OptionContract] = []
        for record in frame.to_dict(orient="records"):
            row = {key: (None if _is_missing(value) else value) for key, value in record.items()}
            bid = row.get("bid") or 0.0
            ask = row.get("ask") or 0.0
            try:
                contracts.append(
                    OptionContract(
                        contract_id=row.get("contractSymbol") or "",
                        symbol=symbol,
                        option_type=option_type,
                        strike=row.get("strike") or 0.0,
                        expiration=expiration,
                        as_of=today,
                        bid=bid,
                        ask=ask,
                        last_price=row.get("lastPrice") or 0.0,
                        mark=round((bid + ask) / 2, 4) if bid and ask else row.get("lastPrice") or 0.0,
                        volume=row.get("volume") or 0,
                        open_interest=row.get("openInterest") or 0,
                        implied_volatility=row.get("impliedVolatility") or 0.0,
                    )
                )
            except ValidationError as exc:
                logger.debug("Skipping malformed yfinance row for %s: %s", symbol, exc)
        return contracts

    def _fast_price(self, ticker: yf.Ticker) -> float | None:
        try:
            fast_info = self._retry(lambda: getattr(ticker, "fast_info", {}), context="fetch fast price info")
        except ProviderError:
            return None
        for key in ("last_price", "lastPrice", "regular_market_price", "regularMarketPrice"):
            try:
                value = fast_info[key]
            except (KeyError, TypeError):
                continue
            if self._is_valid_price(value):
                return float(value)
        return None

    def _retry(self, operation: Callable[[], Any], context: str) -> Any:
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                return run_with_timeout(operation, self._timeout_seconds)
            except OperationTimeout as timeout_exc:
                last_error = timeout_exc
                logger.warning(
                    "Timeout after %ss while trying to %s (attempt %d/%d)",
                    self._timeout_seconds,
                    context,
                    attempt + 1,
                    self._max_retries,
                )
            except Exception as exc:  # yfinance raises generic errors
                last_error = exc
                logger.debug("Failed to %s (attempt %d/%d): %s", context, attempt + 1, self._max_retries, exc)
            if attempt < self._max_retries - 1:
                self._apply_rate_limit_backoff(attempt)

        raise ProviderError(f"Failed to {context}: {last_error}") from last_error

    def _apply_rate_limit_backoff(self, attempt: int) -> None:
        delay = min(self._max_delay, self._base_delay * (1 + attempt))
        delay += random.uniform(0, self._jitter)
        time.sleep(delay)

    def _is_valid_price(self, value: Any) -> bool:
        """Check if a value represents a valid price."""
        if value in (None, 0, ""):
            return False
        try:
            price_val = float(value)
        except (TypeError, ValueError):
            return False
        return math.isfinite(price_val) and price_val > 0


def _is_missing(value: Any) -> bool:
    try:
        return value is None or bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _number(value: Any) -> float:
    return 0.0 if _is_missing(value) else float(value)


__all__ = ["OperationTimeout", "YFinanceAdapter", "run_with_timeout"]
