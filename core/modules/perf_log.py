"""Bounded module load log persisted in the LocalStore.

Stored as a JSON array of ``{module, loadTime, isCritical, timestamp}``
(loadTime in ms, timestamp in epoch ms), most-recent-last, oldest entries
evicted past capacity.
"""
from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, List

from core.storage import LocalStore

DEFAULT_KEY = "glucobalance_module_perf"
DEFAULT_CAPACITY = 50


@dataclass(slots=True)
class PerformanceLogEntry:
    module: str
    load_ms: float
    critical: bool
    timestamp: int

    def to_json(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "loadTime": self.load_ms,
            "isCritical": self.critical,
            "timestamp": self.timestamp,
        }


class PerformanceLog:
    def __init__(
        self,
        store: LocalStore,
        key: str = DEFAULT_KEY,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be >0")
        self._store = store
        self.key = key
        self.capacity = capacity
        # append-and-trim must not interleave across threads sharing a store
        self._lock = Lock()

    def _read(self) -> List[Dict[str, Any]]:
        data = self._store.get_json(self.key, [])
        return data if isinstance(data, list) else []

    def append(self, entry: PerformanceLogEntry) -> None:
        with self._lock:
            data = self._read()
            data.append(entry.to_json())
            if len(data) > self.capacity:
                del data[: len(data) - self.capacity]
            self._store.set_json(self.key, data)

    def entries(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._read()[-self.capacity:]

    def clear(self) -> None:
        with self._lock:
            self._store.remove_item(self.key)


__all__ = ["PerformanceLog", "PerformanceLogEntry", "DEFAULT_KEY"]
