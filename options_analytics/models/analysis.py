from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .benchmark import BenchmarkContext
from .option import OptionContract, Quote
from .score import CASResult, CCASResult, QualificationResult, ScoreSummary

DataSource = Literal["real-time", "fallback"]


class AnalyzedOption(BaseModel):
    """A live contract with its qualification, scores and benchmark context."""

    contract: OptionContract
    qualification: QualificationResult
    cas: Optional[CASResult] = None
    ccas: Optional[CCASResult] = None
    summary: ScoreSummary = Field(default_factory=ScoreSummary)
    benchmark: Optional[BenchmarkContext] = None

    @property
    def buy_call_score(self) -> int:
        return self.cas.buy_call.score if self.cas else 0


class OptionsAnalysis(BaseModel):
    symbol: str
    stock: Quote
    options: List[AnalyzedOption] = Field(default_factory=list)
    data_source: DataSource = "real-time"
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    benchmark_updated: Optional[datetime] = None

    @property
    def qualified(self) -> List[AnalyzedOption]:
        return [item for item in self.options if item.qualification.is_qualified]


__all__ = ["AnalyzedOption", "DataSource", "OptionsAnalysis"]
