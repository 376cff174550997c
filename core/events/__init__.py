"""Typed events for the module runtime + any-subscriber bridge.

Per-event subscriptions go through `core.eventbus`; `on(handler)` here
receives every typed event as handler(name, payload). The built-in metrics
collector is always attached.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, List, Protocol

from core import metrics as _metrics
from core.eventbus import emit as _emit_bus

EventHandler = Callable[[str, Dict[str, Any]], None]


class SupportsEvent(Protocol):  # pragma: no cover
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        ...


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ModuleLoaded(BaseEvent):
    module: str
    load_ms: float
    source: str  # import|legacy|stub|empty
    critical: bool = False


@dataclass(slots=True)
class ModuleFallbackUsed(BaseEvent):
    """Primary import failed; module resolved through a fallback path.

    error_type: taxonomy code of the failure that triggered the fallback.
    source: where the module finally came from (legacy|stub|empty).
    """
    module: str
    error_type: str
    source: str
    message: str | None = None


@dataclass(slots=True)
class ModuleSlowLoad(BaseEvent):
    module: str
    load_ms: float
    threshold_ms: float


@dataclass(slots=True)
class ModuleInitFailed(BaseEvent):
    module: str
    error_type: str
    message: str | None = None
    element_id: str | None = None


@dataclass(slots=True)
class CriticalModulesPreloaded(BaseEvent):
    modules: list[str]
    fallback_count: int
    duration_ms: float


@dataclass(slots=True)
class ModulePrefetched(BaseEvent):
    module: str
    status: str  # cached|in-flight|loaded|fallback|failed
    error_type: str | None = None


@dataclass(slots=True)
class ModuleCacheCleared(BaseEvent):
    cleared: int


@dataclass(slots=True)
class AIRequestCompleted(BaseEvent):
    feature: str
    status: str  # ok|error
    latency_ms: float
    error_type: str | None = None


_ANY_SUBS: List[EventHandler] = []


def _metrics_collector(
    name: str, payload: Dict[str, Any]
) -> None:  # noqa: D401
    if name == "ModuleLoaded":
        _metrics.inc(
            "module_loads_total",
            {"module": payload.get("module"), "source": payload.get("source")},
        )
        _metrics.observe(
            "module_load_ms",
            payload.get("load_ms", 0.0),
            {"module": payload.get("module")},
        )
    elif name == "ModuleFallbackUsed":
        _metrics.inc_module_fallback(
            payload.get("module", "unknown"),
            payload.get("error_type", "unknown"),
        )
    elif name == "ModuleSlowLoad":
        _metrics.inc("module_slow_load_total", {"module": payload.get("module")})
    elif name == "ModuleInitFailed":
        _metrics.inc(
            "module_init_failed_total", {"module": payload.get("module")}
        )
    elif name == "ModulePrefetched":
        _metrics.inc_module_prefetch(payload.get("status", "unknown"))
    elif name == "ModuleCacheCleared":
        _metrics.inc("module_cache_cleared_total")
    elif name == "AIRequestCompleted":
        _metrics.inc(
            "ai_requests_total",
            {
                "feature": payload.get("feature", "unknown"),
                "status": payload.get("status", "unknown"),
            },
        )
        _metrics.observe(
            "ai_request_latency_ms",
            payload.get("latency_ms", 0.0),
            {"feature": payload.get("feature", "unknown")},
        )


_ANY_SUBS.append(_metrics_collector)


def emit(ev: BaseEvent | SupportsEvent) -> None:
    name = ev.__class__.__name__
    payload = ev.to_event()
    _emit_bus(name, payload)
    for h in list(_ANY_SUBS):
        try:
            h(name, dict(payload))
        except Exception:  # noqa: BLE001
            _metrics.inc("handler_exceptions_total", {"event": name})


def on(handler: EventHandler) -> None:
    _ANY_SUBS.append(handler)


def subscribe(handler: EventHandler) -> Callable[[], None]:
    on(handler)

    def _unsub() -> None:  # noqa: D401
        try:
            _ANY_SUBS.remove(handler)
        except ValueError:
            pass
    return _unsub


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _ANY_SUBS.clear()
    _ANY_SUBS.append(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "subscribe",
    "ModuleLoaded",
    "ModuleFallbackUsed",
    "ModuleSlowLoad",
    "ModuleInitFailed",
    "CriticalModulesPreloaded",
    "ModulePrefetched",
    "ModuleCacheCleared",
    "AIRequestCompleted",
    "reset_listeners_for_tests",
]
