from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class QualificationResult(BaseModel):
    is_qualified: bool
    liquidity: bool
    bid_ask_spread: bool
    iv_sanity: bool

    @property
    def failed_filters(self) -> List[str]:
        failed: List[str] = []
        if not self.liquidity:
            failed.append("insufficient liquidity")
        if not self.bid_ask_spread:
            failed.append("spread too wide")
        if not self.iv_sanity:
            failed.append("implied volatility out of range")
        return failed

    @property
    def status(self) -> str:
        return ", ".join(self.failed_filters) or "qualified"


class CASSideScore(BaseModel):
    """Composite attractiveness score for one side (buy or sell) of a call."""

    score: int = 0
    score_vol: int = 0
    score_spec: int = 0
    iv_hv_ratio: float = 0.0
    delta_per_premium: float = 0.0
    price: float = 0.0
    price_type: str = "ask"
    explanation: str = ""


class CASMetadata(BaseModel):
    symbol: str
    expiration: date
    days_to_expiry: Optional[int] = None
    strike: float
    same_expiry_count: int = 0
    ask: float = 0.0
    bid: float = 0.0
    spread: float = 0.0


class CASResult(BaseModel):
    buy_call: CASSideScore
    sell_call: CASSideScore
    metadata: CASMetadata


class CCASResult(BaseModel):
    """Covered call attractiveness score."""

    ccas_score: int = 0
    passed: bool = False
    score_yield: float = 0.0
    score_safety: float = 0.0
    potential_gain_ratio: float = 0.0
    required_buffer: float = 0.0
    annualized_yield: float = 0.0
    reason: str = ""
    explanation: str = ""


class PrefilterResult(BaseModel):
    passed: bool
    potential_gain_ratio: float
    required_buffer: float


class GradedScore(BaseModel):
    score: int
    grade: str
    description: str = ""


class ScoreSummary(BaseModel):
    buy_call: Optional[GradedScore] = None
    sell_call: Optional[GradedScore] = None
    covered_call: Optional[GradedScore] = None
    notes: List[str] = Field(default_factory=list)


__all__ = [
    "CASMetadata",
    "CASResult",
    "CASSideScore",
    "CCASResult",
    "GradedScore",
    "PrefilterResult",
    "QualificationResult",
    "ScoreSummary",
]
