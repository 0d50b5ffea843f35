from .analysis import AnalyzedOption, DataSource, OptionsAnalysis
from .benchmark import (
    BenchmarkContext,
    BenchmarkProgress,
    BenchmarkRun,
    BenchmarkSnapshot,
    BucketStats,
    DTEBucket,
    IVSample,
)
from .option import OptionContract, OptionGreeks, PriceBar, Quote
from .score import (
    CASMetadata,
    CASResult,
    CASSideScore,
    CCASResult,
    GradedScore,
    PrefilterResult,
    QualificationResult,
    ScoreSummary,
)
from .serialization import serialize_analysis, serialize_progress, serialize_snapshot

__all__ = [
    "AnalyzedOption",
    "BenchmarkContext",
    "BenchmarkProgress",
    "BenchmarkRun",
    "BenchmarkSnapshot",
    "BucketStats",
    "CASMetadata",
    "CASResult",
    "CASSideScore",
    "CCASResult",
    "DTEBucket",
    "DataSource",
    "GradedScore",
    "IVSample",
    "OptionContract",
    "OptionGreeks",
    "OptionsAnalysis",
    "PrefilterResult",
    "PriceBar",
    "QualificationResult",
    "Quote",
    "ScoreSummary",
    "serialize_analysis",
    "serialize_progress",
    "serialize_snapshot",
]
