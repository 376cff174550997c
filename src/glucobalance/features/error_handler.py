"""Application error log (critical module).

Keeps the most recent errors newest-first, persisted in the LocalStore so
they survive restarts, and mirrors each one to the ``glucobalance.errors``
logger.
"""
from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Any, Dict, List

from core.storage import LocalStore, get_local_store

ERRORS_KEY = "glucobalance-errors"
MAX_LOG_SIZE = 100

logger = logging.getLogger("glucobalance.errors")


class ErrorHandler:
    def __init__(
        self, store: LocalStore | None = None, max_log_size: int = MAX_LOG_SIZE
    ) -> None:
        self._store = store if store is not None else get_local_store()
        self.max_log_size = max_log_size

    def handle_error(
        self,
        error_type: str,
        error: BaseException | str | None,
        context: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        message = str(error) if error is not None else "Unknown error"
        entry = {
            "id": time.time_ns(),
            "type": error_type,
            "message": message or "Unknown error",
            "context": dict(context or {}),
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }

        def _prepend(log: Any) -> List[Dict[str, Any]]:
            items = log if isinstance(log, list) else []
            return [entry, *items][: self.max_log_size]

        self._store.update_json(ERRORS_KEY, _prepend, [])
        logger.error("[%s] %s", error_type, entry["message"])
        return entry

    def get_errors(self, error_type: str | None = None) -> List[Dict[str, Any]]:
        log = self._store.get_json(ERRORS_KEY, [])
        if not isinstance(log, list):
            return []
        if error_type is None:
            return log
        return [e for e in log if e.get("type") == error_type]

    def clear(self) -> None:
        self._store.remove_item(ERRORS_KEY)


@lru_cache(maxsize=1)
def get_error_handler() -> ErrorHandler:
    return ErrorHandler()


def handle_error(
    error_type: str,
    error: BaseException | str | None,
    context: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    return get_error_handler().handle_error(error_type, error, context)
