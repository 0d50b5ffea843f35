"""Adapter implementation backed by the Alpha Vantage REST API."""

from __future__ import annotations

import logging
import os
import random
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError

from options_analytics.models.option import OptionContract, PriceBar, Quote

from .base import DataNotAvailable, FatalProviderError, MarketDataAdapter, ProviderError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.alphavantage.co"
DEFAULT_TIMEOUT = 10.0
FULL_HISTORY_TIMEOUT = 15.0
COMPACT_HISTORY_SIZE = 100
_REQUIRED_OPTION_FIELDS = ("contractID", "expiration", "strike", "type")


class AlphaVantageAdapter(MarketDataAdapter):
    """Fetch quotes, adjusted daily closes and historical option chains from Alpha Vantage.

    Expected environment variables:
        * ``ALPHAVANTAGE_API_KEY`` - API key used to authenticate requests
          (``demo`` when unset, which only serves sample symbols).
        * ``API_BASE_URL`` - Optional override for the REST endpoint.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
        max_retries: int = 3,
        base_delay: float = 0.75,
        max_delay: float = 4.0,
        jitter: float = 0.3,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self.api_key = api_key or os.getenv("ALPHAVANTAGE_API_KEY") or "demo"
        self.base_url = (base_url or os.getenv("API_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._max_retries = max(1, max_retries)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._jitter = jitter
        self._today_provider = today_provider or date.today

    @property
    def name(self) -> str:
        return "alphavantage"

    def get_quote(self, symbol: str) -> Quote:
        payload = self._retry(
            lambda: self._query(
                {
                    "function": "TIME_SERIES_INTRADAY",
                    "symbol": symbol,
                    "interval": "5min",
                    "outputsize": "compact",
                }
            ),
            context=f"fetch quote for {symbol}",
        )
        series = payload.get("Time Series (5min)")
        if not isinstance(series, dict) or not series:
            raise DataNotAvailable(f"No intraday series returned for {symbol}")

        latest_timestamp = max(series)
        bar = series[latest_timestamp]
        try:
            return Quote(
                symbol=symbol,
                price=float(bar["4. close"]),
                open=float(bar["1. open"]),
                high=float(bar["2. high"]),
                low=float(bar["3. low"]),
                volume=int(float(bar["5. volume"])),
                timestamp=latest_timestamp,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataNotAvailable(f"Malformed intraday bar for {symbol}: {exc}") from exc

    def get_daily_prices(self, symbol: str, lookback: int) -> List[PriceBar]:
        full = lookback + 1 > COMPACT_HISTORY_SIZE
        params = {
            "function": "TIME_SERIES_DAILY_ADJUSTED",
            "symbol": symbol,
            "outputsize": "full" if full else "compact",
        }
        timeout = FULL_HISTORY_TIMEOUT if full else self.timeout
        payload = self._retry(
            lambda: self._query(params, timeout=timeout),
            context=f"fetch daily prices for {symbol}",
        )
        series = payload.get("Time Series (Daily)")
        if not isinstance(series, dict) or not series:
            raise DataNotAvailable(f"No daily series returned for {symbol}")

        bars: List[PriceBar] = []
        for day in sorted(series, reverse=True)[: lookback + 1]:
            row = series[day]
            try:
                bars.append(PriceBar(trade_date=day, adjusted_close=float(row["5. adjusted close"])))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed daily bar %s %s: %s", symbol, day, exc)
        return bars

    def get_option_chain(self, symbol: str, as_of: Optional[date] = None) -> List[OptionContract]:
        params = {"function": "HISTORICAL_OPTIONS", "symbol": symbol}
        if as_of is not None:
            params["date"] = as_of.isoformat()
        label = as_of.isoformat() if as_of else "latest"
        payload = self._retry(
            lambda: self._query(params),
            context=f"fetch option chain for {symbol} {label}",
        )

        rows = payload.get("data")
        if not isinstance(rows, list):
            raise DataNotAvailable(f"Unexpected option chain payload for {symbol} {label}: {sorted(payload)}")

        contracts = [contract for contract in (self._parse_contract(row, symbol, as_of) for row in rows) if contract]
        if not contracts:
            raise DataNotAvailable(f"No option contracts returned for {symbol} {label}")
        logger.debug("Parsed %d contracts for %s %s", len(contracts), symbol, label)
        return contracts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _query(self, params: Dict[str, Any], timeout: float | None = None) -> Dict[str, Any]:
        request_params = dict(params, datatype="json", apikey=self.api_key)
        try:
            response = self._session.get(
                f"{self.base_url}/query",
                params=request_params,
                timeout=timeout or self.timeout,
            )
        except requests.Timeout as exc:
            raise ProviderError(f"Alpha Vantage request timed out: {exc}") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"Alpha Vantage request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitError("Alpha Vantage returned HTTP 429")
        if response.status_code in (401, 403):
            raise FatalProviderError(f"Alpha Vantage rejected the request (HTTP {response.status_code})")
        try:
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            raise ProviderError(f"Alpha Vantage HTTP error: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"Alpha Vantage returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise ProviderError("Alpha Vantage returned a non-object payload")
        self._raise_for_api_message(payload)
        return payload

    @staticmethod
    def _raise_for_api_message(payload: Dict[str, Any]) -> None:
        """Translate the error notices Alpha Vantage embeds in HTTP 200 bodies."""

        error = payload.get("Error Message")
        if error:
            if "apikey" in str(error).lower():
                raise FatalProviderError(f"Alpha Vantage API error: {error}")
            raise DataNotAvailable(f"Alpha Vantage API error: {error}")

        note = payload.get("Note")
        if note:
            raise RateLimitError(f"Alpha Vantage API limit: {note}")

        information = payload.get("Information")
        if information:
            text = str(information).lower()
            if "demo" in text or "premium" in text or "api key" in text:
                raise FatalProviderError(f"Alpha Vantage endpoint unavailable for this key: {information}")
            if "rate limit" in text or "requests per" in text:
                raise RateLimitError(f"Alpha Vantage API limit: {information}")
            if "data" not in payload:
                raise DataNotAvailable(f"Alpha Vantage notice: {information}")

    def _parse_contract(self, row: Any, symbol: str, as_of: Optional[date]) -> Optional[OptionContract]:
        if not isinstance(row, dict) or not all(row.get(field) for field in _REQUIRED_OPTION_FIELDS):
            return None
        record = dict(row)
        record["symbol"] = record.get("symbol") or symbol
        if as_of is None:
            # Live rows carry the last session date; live tenor counts from today.
            record["date"] = self._today_provider().isoformat()
        elif not record.get("date"):
            record["date"] = as_of.isoformat()
        try:
            return OptionContract.model_validate(record)
        except ValidationError as exc:
            logger.debug("Skipping malformed contract %s: %s", row.get("contractID"), exc)
            return None

    def _retry(self, operation: Callable[[], Any], context: str) -> Any:
        last_error: ProviderError | None = None
        for attempt in range(self._max_retries):
            try:
                return operation()
            except ProviderError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
                logger.warning(
                    "Failed to %s (attempt %d/%d): %s", context, attempt + 1, self._max_retries, exc
                )
                if attempt == self._max_retries - 1:
                    break
                self._apply_rate_limit_backoff(attempt)

        if last_error is not None:
            raise last_error
        raise ProviderError(f"Failed to {context}: unknown error")

    def _apply_rate_limit_backoff(self, attempt: int) -> None:
        delay = min(self._max_delay, self._base_delay * (1 + attempt))
        delay += random.uniform(0, self._jitter)
        time.sleep(delay)


__all__ = ["AlphaVantageAdapter"]
