"""LocalStore: persistent key/value storage for the app.

Mirrors the browser storage contract the feature modules were written
against: string values keyed by string, plus JSON helpers. Backed by one
``<encoded key>.json`` file per key under a directory, or a plain dict
when no directory is configured.

Thread-safe: a single RLock serialises all reads and writes so
read-modify-write helpers (`update_json`) are atomic within the process.
"""
from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List

_SAFE = re.compile(r"[A-Za-z0-9.-]")
_ESCAPED = re.compile(r"_([0-9A-F]{2})")
SUFFIX = ".json"


def _file_name(key: str) -> str:
    """Reversible file name for ``key``.

    Letters, digits, ``.`` and ``-`` are kept; every other UTF-8 byte
    (``_`` included) becomes ``_XX`` in upper-case hex, so distinct keys
    never share a file.
    """
    if not key:
        raise ValueError("storage key cannot be empty")
    out = []
    for ch in key:
        if _SAFE.fullmatch(ch):
            out.append(ch)
        else:
            out.extend(f"_{b:02X}" for b in ch.encode("utf-8"))
    return "".join(out) + SUFFIX


def _key_from_file_name(name: str) -> str:
    stem = name[: -len(SUFFIX)] if name.endswith(SUFFIX) else name
    raw = bytearray()
    pos = 0
    for m in _ESCAPED.finditer(stem):
        raw += stem[pos:m.start()].encode("utf-8")
        raw.append(int(m.group(1), 16))
        pos = m.end()
    raw += stem[pos:].encode("utf-8")
    return raw.decode("utf-8", errors="replace")


class LocalStore:
    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root is not None else None
        self._mem: Dict[str, str] = {}
        self._lock = RLock()
        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path | None:
        return self._root

    @property
    def persistent(self) -> bool:
        return self._root is not None

    def _path(self, key: str) -> Path:
        assert self._root is not None
        return self._root / _file_name(key)

    def get_item(self, key: str) -> str | None:
        with self._lock:
            if self._root is None:
                return self._mem.get(key)
            path = self._path(key)
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            if self._root is None:
                self._mem[key] = str(value)
                return
            path = self._path(key)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(str(value), encoding="utf-8")
            tmp.replace(path)

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._root is None:
                self._mem.pop(key, None)
                return
            self._path(key).unlink(missing_ok=True)

    def keys(self) -> List[str]:
        with self._lock:
            if self._root is None:
                return list(self._mem.keys())
            return sorted(
                _key_from_file_name(p.name) for p in self._root.glob(f"*{SUFFIX}")
            )

    def clear(self) -> None:
        with self._lock:
            if self._root is None:
                self._mem.clear()
                return
            for p in self._root.glob(f"*{SUFFIX}"):
                p.unlink(missing_ok=True)

    # --- JSON helpers -----------------------------------------------------
    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    def update_json(
        self, key: str, fn: Callable[[Any], Any], default: Any = None
    ) -> Any:
        """Atomically replace the JSON value at key with fn(current)."""
        with self._lock:
            value = fn(self.get_json(key, default))
            self.set_json(key, value)
            return value


@lru_cache(maxsize=1)
def get_local_store() -> LocalStore:
    from core.config import get_config  # local import to avoid cycle

    return LocalStore(get_config().storage.dir)


def reset_local_store() -> None:
    """Drop the process-wide store (next call rebuilds from config)."""
    get_local_store.cache_clear()


__all__ = ["LocalStore", "get_local_store", "reset_local_store"]
