"""Storage backends for persisting benchmark snapshots."""

from .base import BenchmarkStatus, BenchmarkStore, StorageError
from .sqlite import SQLiteBenchmarkStore

__all__ = [
    "BenchmarkStatus",
    "BenchmarkStore",
    "SQLiteBenchmarkStore",
    "StorageError",
]
