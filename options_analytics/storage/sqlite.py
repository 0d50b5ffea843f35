"""SQLite-backed storage implementation."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from options_analytics.models.benchmark import BenchmarkSnapshot, DTEBucket, IVSample

from .base import BenchmarkStore, StorageError

logger = logging.getLogger(__name__)


def _default_json_serializer(obj: Any) -> Any:
    """Best-effort conversion for non-native JSON objects."""

    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "item"):
        return obj.item()
    return str(obj)


def _json_dumps(payload: Any) -> str:
    return json.dumps(payload, default=_default_json_serializer)


def _json_loads(payload: str) -> Any:
    return json.loads(payload) if payload else {}


def _ensure_parent_exists(path: Path) -> None:
    if path.name == ":memory:":
        return
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteBenchmarkStore(BenchmarkStore):
    """Persist benchmark snapshots using a lightweight SQLite database."""

    def __init__(
        self,
        database: str | Path,
        pragmas: Optional[Mapping[str, Any]] = None,
        *,
        uri: bool = False,
    ) -> None:
        self._database = str(database)
        self._uri = uri
        self._pragmas = dict(pragmas or {})
        if not uri and self._database != ":memory:":
            _ensure_parent_exists(Path(self._database))
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database, uri=self._uri)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        for key, value in self._pragmas.items():
            conn.execute(f"PRAGMA {key}={value};")
        return conn

    def _ensure_schema(self) -> None:
        schema = """
        CREATE TABLE IF NOT EXISTS benchmark_snapshots (
            symbol TEXT PRIMARY KEY,
            last_updated TEXT NOT NULL,
            analysis_window_days INTEGER NOT NULL,
            data_points INTEGER NOT NULL,
            total_samples INTEGER NOT NULL,
            data TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS benchmark_samples (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            bucket TEXT NOT NULL,
            data TEXT NOT NULL,
            FOREIGN KEY(symbol) REFERENCES benchmark_snapshots(symbol) ON DELETE CASCADE
        );
        """
        try:
            with self._connect() as conn:
                conn.executescript(schema)
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to initialise benchmark store at {self._database}: {exc}") from exc

    def save(
        self,
        snapshot: BenchmarkSnapshot,
        samples: Mapping[DTEBucket, Sequence[IVSample]] | None = None,
    ) -> None:
        sample_rows = [
            (
                snapshot.symbol,
                DTEBucket(bucket).value,
                _json_dumps([sample.model_dump(mode="json") for sample in bucket_samples]),
            )
            for bucket, bucket_samples in (samples or {}).items()
        ]
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM benchmark_samples WHERE symbol = ?", (snapshot.symbol,))
                conn.execute(
                    """
                    INSERT INTO benchmark_snapshots(
                        symbol, last_updated, analysis_window_days, data_points, total_samples, data
                    )
                    VALUES(?, ?, ?, ?, ?, ?)
                    ON CONFLICT(symbol) DO UPDATE SET
                        last_updated=excluded.last_updated,
                        analysis_window_days=excluded.analysis_window_days,
                        data_points=excluded.data_points,
                        total_samples=excluded.total_samples,
                        data=excluded.data
                    """,
                    (
                        snapshot.symbol,
                        snapshot.last_updated.isoformat(),
                        snapshot.analysis_window_days,
                        snapshot.data_points,
                        snapshot.total_samples,
                        snapshot.model_dump_json(),
                    ),
                )
                if sample_rows:
                    conn.executemany(
                        "INSERT INTO benchmark_samples(symbol, bucket, data) VALUES(?, ?, ?)",
                        sample_rows,
                    )
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to persist benchmark for '{snapshot.symbol}': {exc}") from exc
        finally:
            conn.close()
        logger.info("Stored benchmark for %s (%d samples)", snapshot.symbol, snapshot.total_samples)

    def load(self, symbol: str) -> Optional[BenchmarkSnapshot]:
        row = self._fetchone("SELECT data FROM benchmark_snapshots WHERE symbol = ?", (symbol,))
        if row is None:
            return None
        try:
            return BenchmarkSnapshot.model_validate_json(row["data"])
        except ValidationError as exc:
            raise StorageError(f"Corrupt benchmark snapshot for '{symbol}': {exc}") from exc

    def load_samples(self, symbol: str) -> Dict[DTEBucket, List[IVSample]]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT bucket, data FROM benchmark_samples WHERE symbol = ? ORDER BY id ASC",
                (symbol,),
            ).fetchall()
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to read benchmark samples for '{symbol}': {exc}") from exc
        finally:
            conn.close()

        samples: Dict[DTEBucket, List[IVSample]] = {}
        try:
            for row in rows:
                samples.setdefault(DTEBucket(row["bucket"]), []).extend(
                    IVSample.model_validate(item) for item in _json_loads(row["data"])
                )
        except (ValidationError, ValueError, TypeError) as exc:
            raise StorageError(f"Corrupt benchmark samples for '{symbol}': {exc}") from exc
        return samples

    def last_updated(self, symbol: str) -> Optional[datetime]:
        row = self._fetchone("SELECT last_updated FROM benchmark_snapshots WHERE symbol = ?", (symbol,))
        return datetime.fromisoformat(row["last_updated"]) if row else None

    def _fetchone(self, query: str, params: Sequence[Any]) -> Optional[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(query, tuple(params)).fetchone()
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to query benchmark store: {exc}") from exc
        finally:
            conn.close()


__all__ = ["SQLiteBenchmarkStore"]
