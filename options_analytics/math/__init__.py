"""Numerical helpers for volatility estimation."""

from .volatility import (
    InsufficientDataError,
    compute_historical_volatility,
    default_hv,
    hv_period_for_dte,
)

__all__ = [
    "InsufficientDataError",
    "compute_historical_volatility",
    "default_hv",
    "hv_period_for_dte",
]
