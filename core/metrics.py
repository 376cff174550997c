"""Minimal in-memory metrics collector.

Purpose:
    - Counters and simple latency samples for the module runtime and the
      API layer.
    - Zero external deps; can be swapped by a Prometheus exporter later.

Core API (intentionally tiny):
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Thread-safety: coarse RLock; overhead negligible for low event volume.

Module runtime metric names (documented for discoverability):
    - module_loads_total{module,source}
    - module_load_ms{module}
    - module_fallback_total{module,error_type}
    - module_slow_load_total{module}
    - module_init_failed_total{module}
    - module_prefetch_total{status}
    - module_cache_cleared_total
    - ai_requests_total{feature,status}
    - ai_queue_depth
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Dict, Tuple, Any

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _label_str(labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _HIST.setdefault(key, []).append(value)


def get_counter(name: str, labels: dict[str, Any] | None = None) -> float:
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters: dict[str, float] = {}
        for (name, labels), v in _COUNTERS.items():
            counters[name + _label_str(labels)] = v
        hist = {}
        for (name, labels), vals in _HIST.items():
            if not vals:
                continue
            ordered = sorted(vals)
            hist[name + _label_str(labels)] = {
                "count": len(vals),
                "min": ordered[0],
                "max": ordered[-1],
                "p50": ordered[len(ordered) // 2],
                "last": vals[-1],
            }
        return {
            "ts": time(),
            "counters": counters,
            "histograms": hist,
        }


def render_text() -> str:
    """Prometheus-style text lines; histograms as _count/_sum/_max."""
    lines: list[str] = []
    with _LOCK:
        for (name, labels), v in sorted(_COUNTERS.items()):
            lines.append(f"{name}{_prom_labels(labels)} {v:g}")
        for (name, labels), vals in sorted(_HIST.items()):
            if not vals:
                continue
            lbl = _prom_labels(labels)
            lines.append(f"{name}_count{lbl} {len(vals)}")
            lines.append(f"{name}_sum{lbl} {sum(vals):g}")
            lines.append(f"{name}_max{lbl} {max(vals):g}")
    return "\n".join(lines) + ("\n" if lines else "")


def _prom_labels(labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels) + "}"


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "get_counter",
    "snapshot",
    "render_text",
    "reset_for_tests",
]


# ------------------- Helper wrappers -------------------

def inc_module_fallback(module: str, error_type: str) -> None:
    """Count a module that resolved through a fallback path.

    error_type: taxonomy code of the last failure before the fallback
    (import-failed, legacy-load-failed, legacy-export-missing).
    """
    inc("module_fallback_total", {"module": module, "error_type": error_type})


def inc_module_prefetch(status: str) -> None:
    """Count prefetch outcomes (cached|in-flight|loaded|fallback|failed)."""
    if status:
        inc("module_prefetch_total", {"status": status})


__all__ += ["inc_module_fallback", "inc_module_prefetch"]
