"""Benchmark snapshot models produced by the historical IV backfill."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DTEBucket(str, Enum):
    """Days-to-expiry ranges used to group implied volatility."""

    ULTRA_SHORT = "ultra_short"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @classmethod
    def for_days(cls, days_to_expiry: int, *, historical: bool = False) -> Optional["DTEBucket"]:
        """Classify ``days_to_expiry``.

        Historical classification uses the absolute value so contracts at or
        past their expiration keep their original tenor. Live classification
        excludes non-positive values and returns ``None`` for them.
        """

        days = abs(days_to_expiry) if historical else days_to_expiry
        if days < 0 or (not historical and days == 0):
            return None
        if days <= 20:
            return cls.ULTRA_SHORT
        if days <= 60:
            return cls.SHORT
        if days <= 180:
            return cls.MEDIUM
        return cls.LONG


class IVSample(BaseModel):
    iv: float
    weight: int = 1
    days_to_expiry: int
    trading_day: date


class BucketStats(BaseModel):
    average_iv: float = 0.0
    sample_count: int = 0
    valid_iv_count: int = 0
    min_iv: float = 0.0
    max_iv: float = 0.0


class BenchmarkSnapshot(BaseModel):
    """Result of one full backfill run. Replaced as a whole by the next run."""

    symbol: str
    buckets: Dict[DTEBucket, BucketStats] = Field(default_factory=dict)
    analysis_window_days: int
    data_points: int = 0
    total_samples: int = 0
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    def bucket(self, bucket: DTEBucket) -> BucketStats:
        return self.buckets.get(bucket, BucketStats())


class BenchmarkRun(BaseModel):
    snapshot: BenchmarkSnapshot
    samples: Dict[DTEBucket, List[IVSample]] = Field(default_factory=dict)


class BenchmarkProgress(BaseModel):
    current: int
    total: int
    symbol: str
    status: str
    trading_day: Optional[date] = None
    message: str = ""


class BenchmarkContext(BaseModel):
    """How a live contract's IV compares with its bucket's historical average."""

    bucket: DTEBucket
    benchmark_iv: float
    current_iv: float
    deviation_pct: Optional[float] = None
    benchmark_updated: datetime


__all__ = [
    "BenchmarkContext",
    "BenchmarkProgress",
    "BenchmarkRun",
    "BenchmarkSnapshot",
    "BucketStats",
    "DTEBucket",
    "IVSample",
]
