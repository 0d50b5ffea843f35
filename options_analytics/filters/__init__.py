"""Contract qualification filters."""

from .qualification import DEFAULT_FILTER_CONFIG, FilterConfig, evaluate, iv_as_percent

__all__ = ["DEFAULT_FILTER_CONFIG", "FilterConfig", "evaluate", "iv_as_percent"]
