"""Arithmetic shared by the CAS and CCAS scorers."""

from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a spreadsheet: halves go away from zero for non-negative input."""

    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def to_decimal(volatility: float) -> float:
    """Volatility above 1 is treated as a percentage."""

    return volatility / 100 if volatility > 1 else volatility


def geometric_mean_score(first: float, second: float, cap: float | None = None) -> int:
    """Combine two sub-scores multiplicatively; a zero in either zeroes the result."""

    if first <= 0 or second <= 0:
        return 0
    raw = math.sqrt(first * second)
    if cap is not None:
        raw = min(cap, raw)
    return int(round_half_up(raw))


__all__ = ["clamp", "geometric_mean_score", "round_half_up", "to_decimal"]
