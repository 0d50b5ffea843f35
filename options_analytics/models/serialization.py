"""Serialization helpers shared between services."""

from __future__ import annotations

from typing import Any, Dict

from .analysis import OptionsAnalysis
from .benchmark import BenchmarkProgress, BenchmarkSnapshot


def serialize_analysis(analysis: OptionsAnalysis) -> Dict[str, Any]:
    """Return a JSON-compatible representation of an options analysis."""

    payload = analysis.model_dump(mode="json")
    for item, model in zip(payload["options"], analysis.options):
        item["qualification"]["status"] = model.qualification.status
    return payload


def serialize_snapshot(snapshot: BenchmarkSnapshot) -> Dict[str, Any]:
    """Return a JSON-compatible payload for a benchmark snapshot."""

    return snapshot.model_dump(mode="json")


def serialize_progress(event: BenchmarkProgress) -> Dict[str, Any]:
    """Return a JSON-compatible payload for a backfill progress event."""

    return event.model_dump(mode="json")


__all__ = [
    "serialize_analysis",
    "serialize_progress",
    "serialize_snapshot",
]
