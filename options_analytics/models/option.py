from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

_GREEK_KEYS = ("delta", "gamma", "theta", "vega", "rho")


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    raise ValueError("Unsupported date format")


class PriceBar(BaseModel):
    """One daily close used for historical volatility."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    trade_date: date = Field(validation_alias=AliasChoices("trade_date", "date"))
    adjusted_close: float = Field(validation_alias=AliasChoices("adjusted_close", "adjustedClose", "close"))

    @field_validator("trade_date", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> date:
        return _parse_date(value)


class OptionGreeks(BaseModel):
    """Normalized representation of option Greeks."""

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    @field_validator(*_GREEK_KEYS, mode="before")
    @classmethod
    def coerce_float(cls, value: Any) -> float:
        try:
            return float(value or 0.0)
        except (TypeError, ValueError):
            return 0.0


class OptionContract(BaseModel):
    """Structured view of an option contract used by the filters and scoring engine.

    ``days_to_expiry`` is measured from ``as_of`` (the trading day the quote
    belongs to), not from today, so historical chains keep their original
    tenor. When neither is supplied the contract is treated as a live quote.
    """

    model_config = ConfigDict(populate_by_name=True)

    contract_id: str = Field(default="", validation_alias=AliasChoices("contract_id", "contractID", "contractId", "contractSymbol"))
    symbol: str
    option_type: Literal["call", "put"] = Field(validation_alias=AliasChoices("option_type", "type"))
    strike: float = Field(validation_alias=AliasChoices("strike", "strikePrice"))
    expiration: date
    as_of: Optional[date] = Field(default=None, validation_alias=AliasChoices("as_of", "date"))
    days_to_expiry: Optional[int] = Field(default=None, validation_alias=AliasChoices("days_to_expiry", "daysToExpiry"))
    bid: float = 0.0
    ask: float = 0.0
    last_price: float = Field(default=0.0, validation_alias=AliasChoices("last_price", "lastPrice", "last"))
    mark: float = 0.0
    volume: int = 0
    open_interest: int = Field(default=0, validation_alias=AliasChoices("open_interest", "openInterest"))
    implied_volatility: float = Field(
        default=0.0, validation_alias=AliasChoices("implied_volatility", "impliedVolatility")
    )
    greeks: OptionGreeks = Field(default_factory=OptionGreeks)
    historical_volatility: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("historical_volatility", "historicalVolatility")
    )
    hv_period: Optional[int] = Field(default=None, validation_alias=AliasChoices("hv_period", "hvPeriod"))

    @model_validator(mode="before")
    @classmethod
    def lift_flat_greeks(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "greeks" in values:
            return values
        flat = {key: values[key] for key in _GREEK_KEYS if key in values}
        if flat:
            values = {key: value for key, value in values.items() if key not in _GREEK_KEYS}
            values["greeks"] = flat
        return values

    @field_validator("option_type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> str:
        return str(value).strip().lower()

    @field_validator("expiration", mode="before")
    @classmethod
    def parse_expiration(cls, value: Any) -> date:
        return _parse_date(value)

    @field_validator("as_of", mode="before")
    @classmethod
    def parse_as_of(cls, value: Any) -> Optional[date]:
        if value in (None, ""):
            return None
        return _parse_date(value)

    @field_validator("volume", "open_interest", mode="before")
    @classmethod
    def coerce_int(cls, value: Any) -> int:
        try:
            return int(float(value or 0))
        except (TypeError, ValueError):
            return 0

    @field_validator("implied_volatility", "last_price", "mark", "bid", "ask", "strike", mode="before")
    @classmethod
    def coerce_float(cls, value: Any) -> float:
        try:
            return float(value or 0.0)
        except (TypeError, ValueError):
            return 0.0

    @model_validator(mode="after")
    def fill_days_to_expiry(self) -> "OptionContract":
        if self.days_to_expiry is None:
            reference = self.as_of or date.today()
            self.days_to_expiry = (self.expiration - reference).days
        return self

    def as_of_date(self, day: date) -> "OptionContract":
        """Return a copy whose ``days_to_expiry`` is measured from ``day``."""

        return self.model_copy(update={"as_of": day, "days_to_expiry": (self.expiration - day).days})

    @property
    def delta(self) -> float:
        return self.greeks.delta

    @property
    def mid_price(self) -> float:
        return round((self.bid + self.ask) / 2, 4) if self.bid or self.ask else self.last_price

    @property
    def spread(self) -> float:
        return self.ask - self.bid


class Quote(BaseModel):
    """Latest price snapshot for an underlying."""

    symbol: str
    price: float
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    volume: int = 0
    timestamp: Optional[str] = None
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    is_fallback: bool = False

    def to_cache(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = ["OptionContract", "OptionGreeks", "PriceBar", "Quote"]
