"""Synchronous in-process event bus keyed by event name.

Each handler gets its own copy of the payload, stamped with `ts` when the
emitter left it out. A failing handler is logged as event-handler-error and
counted in handler_exceptions_total{event}; the remaining handlers still run.
Per-event dispatch time accumulates in dispatch_latency_accum_ms{event}.

Handlers run on the emitting thread, which for the module loader is the
event loop thread; keep them cheap.
"""
from __future__ import annotations

import logging
from threading import RLock
from time import time
from typing import Any, Callable, Dict, List

from core import metrics
from core.errors import validate_error_type

Handler = Callable[[Dict[str, Any]], None]

logger = logging.getLogger("glucobalance.eventbus")

_HANDLER_ERROR = validate_error_type("event-handler-error")


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = {}
        self._lock = RLock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._subs.setdefault(event, []).append(handler)

        def _unsub() -> None:
            with self._lock:
                handlers = self._subs.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)

        return _unsub

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        t0 = time()
        payload.setdefault("ts", t0)
        with self._lock:
            subs = list(self._subs.get(event, ()))
        metrics.inc("events_emitted_total", {"event": event})
        for h in subs:
            try:
                h(dict(payload))
            except Exception:  # noqa: BLE001
                logger.exception(
                    "event handler failed event=%s error_type=%s", event, _HANDLER_ERROR
                )
                metrics.inc("handler_exceptions_total", {"event": event})
        latency_ms = (time() - t0) * 1000.0
        metrics.inc("dispatch_latency_accum_ms", {"event": event}, latency_ms)

    def reset_for_tests(self) -> None:  # pragma: no cover
        with self._lock:
            self._subs.clear()


_BUS = EventBus()


def subscribe(event: str, handler: Handler) -> Callable[[], None]:
    return _BUS.subscribe(event, handler)


def emit(event: str, payload: Dict[str, Any]) -> None:
    _BUS.emit(event, payload)


def reset_for_tests() -> None:  # pragma: no cover
    _BUS.reset_for_tests()


__all__ = ["emit", "subscribe", "reset_for_tests", "EventBus"]
