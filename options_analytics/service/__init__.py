"""Request-level analysis service."""

from .analysis import AnalysisService, NoContractsError, live_filter

__all__ = ["AnalysisService", "NoContractsError", "live_filter"]
