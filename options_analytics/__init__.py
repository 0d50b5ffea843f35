"""Options analytics: historical volatility, CAS/CCAS scoring and IV benchmarks."""

from __future__ import annotations

from typing import Any

__version__ = "0.1.0"


def build_service(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    """Lazily import the configured service factory."""

    from .config import build_service as _impl

    return _impl(*args, **kwargs)


__all__ = ["__version__", "build_service"]
