from __future__ import annotations

import copy
from typing import Dict

DEFAULT_SCORING_CONFIG: Dict[str, Dict[str, float]] = {
    "volatility": {
        "min_ratio": 0.7,
        "max_ratio": 2.0,
    },
    "covered_call": {
        "min_dte": 8,
        "max_dte": 29,
        "min_buffer": 0.04,
        "max_buffer": 0.12,
        "min_yield": 0.05,
        "max_yield": 0.25,
        "min_delta": 0.10,
        "max_delta": 0.40,
    },
    "grade_bands": {
        "excellent": 80,
        "good": 65,
        "average": 45,
    },
}


def merge_config(overrides: Dict[str, object] | None) -> Dict[str, Dict[str, float]]:
    merged = copy.deepcopy(DEFAULT_SCORING_CONFIG)
    if not overrides:
        return merged
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update({key: float(value) for key, value in values.items()})
        else:
            merged[section] = values  # type: ignore[assignment]
    return merged
