"""Base definitions for benchmark storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from options_analytics.models.benchmark import BenchmarkSnapshot, DTEBucket, IVSample


class StorageError(RuntimeError):
    """Raised when a storage backend encounters an unrecoverable error."""


@dataclass(frozen=True)
class BenchmarkStatus:
    """Lightweight view of what is stored for a symbol."""

    symbol: str
    has_data: bool
    last_updated: Optional[datetime] = None
    analysis_window_days: int = 0
    data_points: int = 0
    total_samples: int = 0


class BenchmarkStore(ABC):
    """Abstract base class for benchmark persistence.

    A snapshot is always written whole: ``save`` replaces the previous
    snapshot and its samples for the symbol and never merges with them.
    """

    @abstractmethod
    def save(
        self,
        snapshot: BenchmarkSnapshot,
        samples: Mapping[DTEBucket, Sequence[IVSample]] | None = None,
    ) -> None:
        """Replace the stored snapshot (and raw samples) for ``snapshot.symbol``."""

    @abstractmethod
    def load(self, symbol: str) -> Optional[BenchmarkSnapshot]:
        """Return the latest snapshot for ``symbol`` or ``None``."""

    @abstractmethod
    def load_samples(self, symbol: str) -> Dict[DTEBucket, List[IVSample]]:
        """Return the raw per-bucket samples written with the latest snapshot."""

    def status(self, symbol: str) -> BenchmarkStatus:
        snapshot = self.load(symbol)
        if snapshot is None:
            return BenchmarkStatus(symbol=symbol, has_data=False)
        return BenchmarkStatus(
            symbol=symbol,
            has_data=True,
            last_updated=snapshot.last_updated,
            analysis_window_days=snapshot.analysis_window_days,
            data_points=snapshot.data_points,
            total_samples=snapshot.total_samples,
        )


__all__ = ["BenchmarkStatus", "BenchmarkStore", "StorageError"]
