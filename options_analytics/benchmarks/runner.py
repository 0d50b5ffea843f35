"""Background execution of benchmark backfills.

Each backfill runs on its own worker thread. Progress events are appended to
the job's history so any number of subscribers (an SSE stream, the CLI) can
follow along from the start, and a terminal ``completed``, ``cancelled`` or
``failed`` event always closes the stream.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional

from options_analytics.models.benchmark import BenchmarkProgress, BenchmarkSnapshot

from .aggregator import DEFAULT_ANALYSIS_WINDOW_DAYS, ProgressCallback
from .errors import BackfillCancelled, BackfillInProgressError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "cancelled", "failed"})

BackfillFunction = Callable[[str, int, ProgressCallback, threading.Event], BenchmarkSnapshot]


class BackfillJob:
    """One running (or finished) backfill for a symbol."""

    def __init__(self, symbol: str, window_days: int, backfill: BackfillFunction) -> None:
        self.symbol = symbol
        self.window_days = window_days
        self.cancel_event = threading.Event()
        self.result: Optional[BenchmarkSnapshot] = None
        self.error: Optional[BaseException] = None
        self._backfill = backfill
        self._history: List[BenchmarkProgress] = []
        self._condition = threading.Condition()
        self._thread = threading.Thread(target=self._run, name=f"backfill-{symbol}", daemon=True)

    @property
    def status(self) -> str:
        with self._condition:
            return self._history[-1].status if self._history else "pending"

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> "BackfillJob":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.cancel_event.set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def events(self, timeout: float | None = None) -> Iterator[BenchmarkProgress]:
        """Yield every event from the beginning, blocking until the job finishes.

        With ``timeout`` set, iteration also stops when no new event arrives
        within that many seconds.
        """

        index = 0
        while True:
            with self._condition:
                if index >= len(self._history):
                    self._condition.wait_for(lambda: index < len(self._history), timeout=timeout)
                if index >= len(self._history):
                    return
                event = self._history[index]
            index += 1
            yield event
            if event.status in TERMINAL_STATUSES:
                return

    def _publish(self, event: BenchmarkProgress) -> None:
        with self._condition:
            self._history.append(event)
            self._condition.notify_all()

    def _last_position(self) -> tuple[int, int]:
        with self._condition:
            if not self._history:
                return 0, self.window_days
            last = self._history[-1]
            return last.current, last.total

    def _finish(self, status: str, message: str) -> None:
        current, total = self._last_position()
        self._publish(
            BenchmarkProgress(current=current, total=total, symbol=self.symbol, status=status, message=message)
        )

    def _run(self) -> None:
        try:
            self.result = self._backfill(self.symbol, self.window_days, self._publish, self.cancel_event)
        except BackfillCancelled as exc:
            logger.info("Backfill for %s cancelled", self.symbol)
            self._finish("cancelled", str(exc))
        except Exception as exc:
            self.error = exc
            logger.exception("Backfill for %s failed", self.symbol)
            self._finish("failed", type(exc).__name__)
        else:
            self._finish("completed", f"{self.result.data_points} trading days processed")


class BackfillManager:
    """Starts backfills and guarantees at most one running job per symbol."""

    def __init__(self, backfill: BackfillFunction, default_window_days: int = DEFAULT_ANALYSIS_WINDOW_DAYS) -> None:
        self._backfill = backfill
        self._default_window_days = default_window_days
        self._jobs: Dict[str, BackfillJob] = {}
        self._lock = threading.Lock()

    def start(self, symbol: str, window_days: int | None = None) -> BackfillJob:
        symbol = symbol.upper()
        with self._lock:
            current = self._jobs.get(symbol)
            if current is not None and current.is_running:
                raise BackfillInProgressError(f"A backfill for {symbol} is already running")
            job = BackfillJob(symbol, window_days or self._default_window_days, self._backfill)
            self._jobs[symbol] = job
            job.start()
        logger.info("Started %s backfill over %d trading days", symbol, job.window_days)
        return job

    def get(self, symbol: str) -> Optional[BackfillJob]:
        with self._lock:
            return self._jobs.get(symbol.upper())

    def cancel(self, symbol: str) -> bool:
        job = self.get(symbol)
        if job is None or not job.is_running:
            return False
        job.cancel()
        return True

    def shutdown(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()
        for job in jobs:
            job.join(timeout)


__all__ = ["BackfillJob", "BackfillManager", "TERMINAL_STATUSES"]
