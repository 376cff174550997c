"""Modules package.

Runtime module system for feature code:
 - ModuleDescriptor + static registry of known features
 - ModuleLoader: cached, de-duplicated async loading with fallbacks,
   lazy (viewport) and prefetch (hover/focus) triggers
 - PerformanceLog: bounded persisted load timings
"""
from __future__ import annotations

from .exceptions import LegacyLoadError, ModuleLoadError  # noqa: F401
from .module_loader import (  # noqa: F401
    LAZY_ATTR,
    LOADED_CLASS,
    PREFETCH_ATTR,
    ModuleLoader,
    PrefetchResult,
    create_module_loader,
)
from .perf_log import PerformanceLog, PerformanceLogEntry  # noqa: F401
from .registry import ModuleDescriptor, build_registry  # noqa: F401

__all__ = [
    "ModuleLoader",
    "ModuleDescriptor",
    "PrefetchResult",
    "PerformanceLog",
    "PerformanceLogEntry",
    "ModuleLoadError",
    "LegacyLoadError",
    "build_registry",
    "create_module_loader",
    "LAZY_ATTR",
    "PREFETCH_ATTR",
    "LOADED_CLASS",
]
