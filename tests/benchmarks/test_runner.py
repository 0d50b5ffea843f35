from __future__ import annotations

import threading

import pytest

from options_analytics.benchmarks import BackfillCancelled, BackfillInProgressError, BackfillManager
from options_analytics.models.benchmark import BenchmarkProgress, BenchmarkSnapshot


def instant_backfill(symbol, window_days, progress, cancel_event):
    for index in range(1, 4):
        progress(BenchmarkProgress(current=index, total=3, symbol=symbol, status="processing", message="1 contracts"))
    return BenchmarkSnapshot(symbol=symbol, analysis_window_days=window_days, data_points=3, total_samples=3)


def test_events_stream_ends_with_completed():
    manager = BackfillManager(instant_backfill)
    job = manager.start("nvda", window_days=3)
    events = list(job.events(timeout=5))

    assert [event.status for event in events] == ["processing", "processing", "processing", "completed"]
    assert events[-1].message == "3 trading days processed"
    assert events[-1].current == 3
    assert job.result.symbol == "NVDA"
    assert job.status == "completed"

    # A late subscriber replays the full history.
    assert len(list(job.events(timeout=1))) == 4


def test_second_start_while_running_is_rejected():
    release = threading.Event()
    started = threading.Event()

    def blocking_backfill(symbol, window_days, progress, cancel_event):
        started.set()
        release.wait(5)
        return BenchmarkSnapshot(symbol=symbol, analysis_window_days=window_days)

    manager = BackfillManager(blocking_backfill)
    job = manager.start("NVDA")
    started.wait(5)
    try:
        with pytest.raises(BackfillInProgressError):
            manager.start("nvda")
        assert job.window_days == 126
    finally:
        release.set()
        job.join(5)

    # Once finished a new run may start.
    manager.start("NVDA").join(5)


def test_cancel_marks_job_cancelled():
    started = threading.Event()

    def cancellable_backfill(symbol, window_days, progress, cancel_event):
        started.set()
        cancel_event.wait(5)
        raise BackfillCancelled("stopped")

    manager = BackfillManager(cancellable_backfill)
    job = manager.start("AAPL", window_days=10)
    started.wait(5)

    assert manager.cancel("aapl") is True
    events = list(job.events(timeout=5))
    assert events[-1].status == "cancelled"
    assert events[-1].total == 10
    job.join(5)
    assert manager.cancel("AAPL") is False
    assert manager.cancel("MSFT") is False


def test_failure_is_reported_as_terminal_event():
    def failing_backfill(symbol, window_days, progress, cancel_event):
        raise RuntimeError("boom")

    manager = BackfillManager(failing_backfill)
    job = manager.start("TSLA", window_days=5)
    events = list(job.events(timeout=5))

    assert events[-1].status == "failed"
    assert events[-1].message == "RuntimeError"
    assert isinstance(job.error, RuntimeError)
    assert manager.get("tsla") is job
