"""Day-scoped caches for quotes and historical volatility."""

from .daily import CacheStats, DailyCache

PRICE_NAMESPACE = "price"
HV_NAMESPACE = "hv"

__all__ = ["CacheStats", "DailyCache", "HV_NAMESPACE", "PRICE_NAMESPACE"]
