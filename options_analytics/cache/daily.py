"""Date-scoped key/value cache persisted as one JSON document per namespace.

Entries are valid for the calendar day they were written on. The first read
after midnight misses, so each (namespace, key) is fetched from the provider
at most once per day.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

Entry = Dict[str, Any]


@dataclass(frozen=True)
class CacheStats:
    namespace: str
    date: Optional[date]
    is_current: bool
    count: int


def _default_json_serializer(obj: Any) -> Any:
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "tolist"):
        return obj.tolist()
    return str(obj)


class DailyCache:
    """File-backed cache whose entries expire when the calendar date changes."""

    def __init__(
        self,
        directory: str | Path,
        *,
        today_provider: Callable[[], date] | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._today_provider = today_provider or date.today
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._namespaces: Dict[str, Dict[str, Entry]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._key_locks: Dict[tuple, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def today(self) -> date:
        return self._today_provider()

    def is_current(self, entry: Mapping[str, Any]) -> bool:
        """Return ``True`` if ``entry`` was cached today."""

        return entry.get("cached_date") == self.today().isoformat()

    def get(self, namespace: str, key: str) -> Any:
        with self._lock(namespace):
            entry = self._load(namespace).get(key)
            if entry is None or not self.is_current(entry):
                return None
            return entry["payload"]

    def set(self, namespace: str, key: str, payload: Any) -> None:
        with self._lock(namespace):
            self._put(namespace, key, payload)

    def get_or_set(self, namespace: str, key: str, factory: Callable[[], Any]) -> Any:
        """Return today's value for ``key``, computing and storing it when missing.

        Concurrent callers for the same key wait on a per-key lock, so a
        missing value is computed once. ``factory`` runs outside the namespace
        lock and never blocks reads of other keys.
        """

        with self._key_lock(namespace, key):
            cached = self.get(namespace, key)
            if cached is not None:
                return cached
            payload = factory()
            if payload is not None:
                self.set(namespace, key, payload)
            return payload

    def clear(self, namespace: str) -> None:
        with self._lock(namespace):
            self._namespaces[namespace] = {}
            self._flush(namespace)
        logger.info("Cleared %s cache", namespace)

    def stats(self, namespace: str) -> CacheStats:
        with self._lock(namespace):
            entries = self._load(namespace)
            current = [entry for entry in entries.values() if self.is_current(entry)]
            dates = sorted({entry.get("cached_date") for entry in entries.values() if entry.get("cached_date")})
            latest = date.fromisoformat(dates[-1]) if dates else None
            return CacheStats(
                namespace=namespace,
                date=latest,
                is_current=latest == self.today() if latest else False,
                count=len(current),
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _lock(self, namespace: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(namespace, threading.Lock())

    def _key_lock(self, namespace: str, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._key_locks.setdefault((namespace, key), threading.Lock())

    def _path(self, namespace: str) -> Path:
        return self._directory / f"{namespace}-cache.json"

    def _put(self, namespace: str, key: str, payload: Any) -> None:
        entries = self._load(namespace)
        # Drop entries from previous days so the file only grows within a day.
        for stale_key in [k for k, entry in entries.items() if not self.is_current(entry)]:
            del entries[stale_key]
        entries[key] = {
            "payload": payload,
            "cached_date": self.today().isoformat(),
            "cached_at": self._now_provider().isoformat(),
        }
        self._flush(namespace)

    def _load(self, namespace: str) -> Dict[str, Entry]:
        if namespace in self._namespaces:
            return self._namespaces[namespace]

        path = self._path(namespace)
        entries: Dict[str, Entry] = {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
            raw_entries = document.get("entries", {}) if isinstance(document, dict) else {}
            entries = {str(key): value for key, value in raw_entries.items() if isinstance(value, dict)}
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable %s cache at %s: %s", namespace, path, exc)

        self._namespaces[namespace] = entries
        return entries

    def _flush(self, namespace: str) -> None:
        path = self._path(namespace)
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "date": self.today().isoformat(),
            "last_updated": self._now_provider().isoformat(),
            "count": len(self._namespaces.get(namespace, {})),
            "entries": self._namespaces.get(namespace, {}),
        }
        fd, tmp_name = tempfile.mkstemp(prefix=f".{namespace}-", suffix=".json", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, default=_default_json_serializer)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = ["CacheStats", "DailyCache"]
