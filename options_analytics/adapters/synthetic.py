"""Synthetic market data used when the live provider is unavailable.

Prices are drawn uniformly from a per-symbol range and option chains are
built around the drawn price, so pages keep rendering while the provider is
down. Every quote is flagged ``is_fallback`` and callers never cache it.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from options_analytics.math.volatility import default_hv
from options_analytics.models.option import OptionContract, PriceBar, Quote

from .base import MarketDataAdapter

logger = logging.getLogger(__name__)

FALLBACK_PRICE_RANGES: Dict[str, Tuple[float, float]] = {
    "NVDA": (140, 180),
    "MSFT": (320, 380),
    "AAPL": (160, 190),
    "AMZN": (140, 170),
    "GOOGL": (120, 150),
    "META": (280, 320),
    "AVGO": (1200, 1400),
    "TSLA": (200, 280),
    "BRK-B": (400, 450),
    "JPM": (220, 260),
    "WMT": (80, 100),
    "LLY": (700, 850),
    "V": (270, 320),
    "ORCL": (100, 130),
    "MA": (450, 520),
    "NFLX": (380, 450),
    "XOM": (110, 130),
    "COST": (650, 750),
    "JNJ": (150, 180),
    "HD": (350, 420),
    "BABA": (80, 120),
    "PDD": (120, 160),
    "NTES": (90, 120),
    "JD": (35, 50),
    "TME": (8, 15),
}
DEFAULT_PRICE_RANGE: Tuple[float, float] = (50, 200)

STRIKE_MULTIPLIERS: Sequence[float] = (0.85, 0.9, 0.95, 1.0, 1.05, 1.1, 1.15)
EXPIRY_OFFSETS: Sequence[int] = (7, 14, 21, 30, 45, 60, 90)


class SyntheticMarketData(MarketDataAdapter):
    """Seeded random generator shaped like a market data provider."""

    def __init__(
        self,
        seed: int | None = None,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self._rng = np.random.default_rng(seed)
        self._today_provider = today_provider or date.today

    @property
    def name(self) -> str:
        return "synthetic"

    def get_quote(self, symbol: str) -> Quote:
        low, high = FALLBACK_PRICE_RANGES.get(symbol.upper(), DEFAULT_PRICE_RANGE)
        price = float(self._rng.uniform(low, high))
        return Quote(
            symbol=symbol,
            price=round(price, 2),
            open=round(price * 0.99, 2),
            high=round(price * 1.02, 2),
            low=round(price * 0.98, 2),
            volume=int(self._rng.integers(100_000, 1_100_000)),
            timestamp=self._today_provider().isoformat(),
            is_fallback=True,
        )

    def get_daily_prices(self, symbol: str, lookback: int) -> List[PriceBar]:
        """Geometric random walk ending at a fallback price, newest first."""

        sigma = default_hv(symbol) / 100 / np.sqrt(252)
        returns = self._rng.normal(0.0, sigma, size=lookback)
        end_price = self.get_quote(symbol).price
        path = end_price * np.exp(-np.concatenate(([0.0], np.cumsum(returns))))

        bars: List[PriceBar] = []
        day = self._today_provider()
        for close in path:
            while day.weekday() >= 5:
                day -= timedelta(days=1)
            bars.append(PriceBar(trade_date=day, adjusted_close=round(float(close), 4)))
            day -= timedelta(days=1)
        return bars

    def get_option_chain(
        self,
        symbol: str,
        as_of: Optional[date] = None,
        stock_price: float | None = None,
    ) -> List[OptionContract]:
        as_of = as_of or self._today_provider()
        price = stock_price if stock_price and stock_price > 0 else self.get_quote(symbol).price
        contracts: List[OptionContract] = []
        for offset in EXPIRY_OFFSETS:
            expiration = as_of + timedelta(days=offset)
            for option_type in ("call", "put"):
                for multiplier in STRIKE_MULTIPLIERS:
                    contracts.append(self._contract(symbol, price, option_type, round(price * multiplier), expiration, as_of))
        logger.info("Generated %d synthetic contracts for %s at %.2f", len(contracts), symbol, price)
        return contracts

    def _contract(
        self,
        symbol: str,
        stock_price: float,
        option_type: str,
        strike: float,
        expiration: date,
        as_of: date,
    ) -> OptionContract:
        days = (expiration - as_of).days
        is_call = option_type == "call"
        moneyness = stock_price / strike
        intrinsic = max(0.0, stock_price - strike) if is_call else max(0.0, strike - stock_price)
        time_value = max(1.0, days / 365 * 10 * np.sqrt(moneyness))
        premium = intrinsic + time_value
        spread = max(0.05, premium * 0.04)

        iv = 0.3 + abs(moneyness - 1) * 0.2 + float(self._rng.uniform(0, 0.1))
        distance = (stock_price - strike) / stock_price
        call_delta = float(np.clip(0.5 + distance * 2.5, 0.02, 0.98))
        delta = call_delta if is_call else call_delta - 1

        type_code = "C" if is_call else "P"
        return OptionContract(
            contract_id=f"{symbol}{expiration:%y%m%d}{type_code}{int(strike * 1000):08d}",
            symbol=symbol,
            option_type=option_type,
            strike=strike,
            expiration=expiration,
            as_of=as_of,
            bid=round(premium - spread / 2, 2),
            ask=round(premium + spread / 2, 2),
            last_price=round(premium, 2),
            mark=round(premium, 2),
            volume=int(self._rng.integers(20, 5_000)),
            open_interest=int(self._rng.integers(200, 20_000)),
            implied_volatility=round(iv, 4),
            greeks={"delta": round(delta, 4)},
        )


__all__ = ["DEFAULT_PRICE_RANGE", "FALLBACK_PRICE_RANGES", "SyntheticMarketData"]
