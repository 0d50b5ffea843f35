from __future__ import annotations


class BackfillCancelled(Exception):
    """Raised when a running backfill observes its cancellation token."""


class BackfillInProgressError(RuntimeError):
    """Raised when a backfill is requested for a symbol that already has one running."""


class EmptyBackfillError(RuntimeError):
    """Raised when a backfill finishes without a single usable trading day."""


__all__ = ["BackfillCancelled", "BackfillInProgressError", "EmptyBackfillError"]
