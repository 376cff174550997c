"""ModuleLoader: resolve feature modules once, degrade instead of failing.

Responsibilities:
 - Resolve a ModuleName exactly once per cache lifetime, no matter how many
   callers ask concurrently (one in-flight task per name)
 - Resolution chain: primary import -> legacy file -> registry stub ->
   empty namespace; callers never see a load exception
 - Eagerly load the critical set on start
 - Lazy-load modules for page elements entering the viewport (50px margin)
 - Prefetch on hover/focus of elements naming a module
 - Keep a bounded, persisted log of load timings

Everything runs on one asyncio loop. Cache and in-flight lookups happen with
no suspension in between, so they need no lock.
"""
from __future__ import annotations

import asyncio
import importlib
import importlib.util
import inspect
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Literal,
    Optional,
)

from core.config import get_config
from core.config.schemas.loader import LoaderConfig
from core.errors import map_exception, validate_error_type
from core.events import (
    CriticalModulesPreloaded,
    ModuleCacheCleared,
    ModuleFallbackUsed,
    ModuleInitFailed,
    ModuleLoaded,
    ModulePrefetched,
    ModuleSlowLoad,
    emit,
)
from core.page import Document, Element, IntersectionEntry, IntersectionObserver
from core.storage import LocalStore, get_local_store

from .exceptions import LegacyLoadError
from .perf_log import PerformanceLog, PerformanceLogEntry
from .registry import (
    ModuleDescriptor,
    build_registry,
    conventional_descriptor,
    is_valid_name,
    snake_name,
)

LAZY_ATTR = "data-lazy-module"
PREFETCH_ATTR = "data-prefetch-module"
LOADED_CLASS = "module-loaded"

ModuleSource = Literal["import", "legacy", "stub", "empty"]
PrefetchStatus = Literal["cached", "in-flight", "loaded", "fallback", "failed"]

Importer = Callable[[str], Awaitable[Any]]
LegacyLoader = Callable[[ModuleDescriptor, Path], Awaitable[Any]]

logger = logging.getLogger("glucobalance.loader")


@dataclass(slots=True)
class PrefetchResult:
    """Outcome of a fire-and-forget prefetch; callers may ignore it."""
    module: str
    status: PrefetchStatus
    error_type: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "status": self.status,
            "error_type": self.error_type,
            "message": self.message,
        }


class ModuleLoaderState:
    __slots__ = ("loaded", "in_flight", "sources", "generation")

    def __init__(self) -> None:
        self.loaded: Dict[str, Any] = {}
        self.in_flight: Dict[str, asyncio.Task] = {}
        self.sources: Dict[str, ModuleSource] = {}
        # bumped on reset so loads started earlier do not repopulate
        self.generation = 0

    def reset(self) -> int:
        cleared = len(self.loaded)
        self.loaded.clear()
        self.in_flight.clear()
        self.sources.clear()
        self.generation += 1
        return cleared


async def import_module_async(import_path: str) -> Any:
    return await asyncio.to_thread(importlib.import_module, import_path)


async def load_legacy_file(descriptor: ModuleDescriptor, legacy_dir: Path) -> Any:
    """Execute ``<legacy_dir>/<name>.py`` and return its declared export."""
    export_name = descriptor.legacy_export
    if not export_name:
        raise LegacyLoadError(f"no legacy export declared for {descriptor.name}")
    path = Path(legacy_dir) / descriptor.legacy_file
    if not path.is_file():
        raise LegacyLoadError(f"legacy file not found: {path}")

    def _exec() -> Any:
        spec = importlib.util.spec_from_file_location(
            f"glucobalance_legacy_{snake_name(descriptor.name)}", path
        )
        if spec is None or spec.loader is None:
            raise LegacyLoadError(f"cannot load legacy file {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    try:
        module = await asyncio.to_thread(_exec)
    except LegacyLoadError:
        raise
    except Exception as e:  # noqa: BLE001
        raise LegacyLoadError(f"failed to execute {path}: {e}") from e
    export = getattr(module, export_name, None)
    if export is None:
        raise LegacyLoadError(
            f"legacy module {descriptor.name} has no export '{export_name}'",
            error_type="legacy-export-missing",
        )
    return export


class ModuleLoader:
    def __init__(
        self,
        *,
        document: Optional[Document] = None,
        config: Optional[LoaderConfig] = None,
        store: Optional[LocalStore] = None,
        registry: Optional[Dict[str, ModuleDescriptor]] = None,
        importer: Optional[Importer] = None,
        legacy_loader: Optional[LegacyLoader] = None,
        legacy_dir: str | Path | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        cfg = config or get_config().loader
        self._cfg = cfg
        self.critical_modules: tuple[str, ...] = tuple(dict.fromkeys(cfg.critical))
        self._registry = (
            registry if registry is not None
            else build_registry(cfg.feature_package)
        )
        self._importer = importer or import_module_async
        self._legacy_loader = legacy_loader or load_legacy_file
        self._legacy_dir = Path(legacy_dir or cfg.legacy_dir)
        self._clock = clock
        self._state = ModuleLoaderState()
        self._perf = PerformanceLog(
            store if store is not None else get_local_store(),
            key=cfg.perf_log_key,
            capacity=cfg.perf_log_capacity,
        )
        self._background: set[asyncio.Task] = set()
        self._deferred: List[Callable[[], Awaitable[Any]]] = []
        self._document = document
        self._observer: Optional[IntersectionObserver] = None
        self._started = False
        if document is not None:
            self.setup_lazy_loading()
            self.setup_prefetch_on_interaction()

    # --- Lifecycle -----------------------------------------------------------
    async def start(self) -> Dict[str, str]:
        """Run deferred triggers and preload the critical set (once)."""
        if self._started:
            return {n: self._state.sources.get(n, "empty") for n in self.critical_modules}
        self._started = True
        deferred, self._deferred = self._deferred, []
        for factory in deferred:
            self._schedule(factory)
        return await self.preload_critical_modules()

    async def wait_idle(self) -> None:
        """Wait for background work (lazy triggers, prefetches, loads)."""
        while True:
            pending = set(self._background) | set(self._state.in_flight.values())
            if not pending:
                return
            await asyncio.gather(
                *(asyncio.shield(t) for t in pending), return_exceptions=True
            )

    # --- Core load path ------------------------------------------------------
    def descriptor(self, name: str) -> Optional[ModuleDescriptor]:
        desc = self._registry.get(name)
        if desc is not None:
            return desc
        if not is_valid_name(name):
            return None
        return conventional_descriptor(name, self._cfg.feature_package)

    async def load_module(self, name: str, critical: bool = False) -> Any:
        if name in self._state.loaded:
            return self._state.loaded[name]
        task = self._state.in_flight.get(name)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._resolve(name, critical, self._state.generation),
                name=f"module-load:{name}",
            )
            self._state.in_flight[name] = task
        # one caller giving up must not cancel the shared load
        return await asyncio.shield(task)

    async def _resolve(self, name: str, critical: bool, generation: int) -> Any:
        start = self._clock()
        try:
            module, source = await self._fetch(name)
            if self._state.generation == generation:
                self._state.loaded[name] = module
                self._state.sources[name] = source
        finally:
            if self._state.in_flight.get(name) is asyncio.current_task():
                del self._state.in_flight[name]
        elapsed_ms = (self._clock() - start) * 1000.0
        await self._track(name, elapsed_ms, critical, source)
        return module

    async def _fetch(self, name: str) -> tuple[Any, ModuleSource]:
        desc = self.descriptor(name)
        if desc is None:
            logger.warning("invalid module name %r; using empty module", name)
            self._emit_fallback(name, "import-failed", "empty", "invalid module name")
            return SimpleNamespace(), "empty"

        try:
            return await self._importer(desc.import_path), "import"
        except Exception as e:  # noqa: BLE001
            error_type = map_exception(e, "module.import")
            message = str(e)
            logger.error("Failed to load module %s: %s", name, e)

        if desc.legacy_export:
            try:
                module = await self._legacy_loader(desc, self._legacy_dir)
                self._emit_fallback(name, error_type, "legacy", message)
                return module, "legacy"
            except Exception as e:  # noqa: BLE001
                error_type = getattr(e, "error_type", None) or map_exception(
                    e, "module.legacy"
                )
                message = str(e)
                logger.error("Legacy load failed for module %s: %s", name, e)

        logger.warning("Using fallback for module %s", name)
        fallback: Any = None
        source: ModuleSource = "empty"
        if desc.stub is not None:
            try:
                fallback = desc.stub()
                source = "stub"
            except Exception:  # noqa: BLE001
                logger.exception("stub factory failed for module %s", name)
        if fallback is None:
            fallback = SimpleNamespace()
        self._emit_fallback(name, error_type, source, message)
        return fallback, source

    def _emit_fallback(
        self, name: str, error_type: str, source: str, message: str | None
    ) -> None:
        emit(
            ModuleFallbackUsed(
                module=name,
                error_type=validate_error_type(error_type),
                source=source,
                message=message,
            )
        )

    async def _track(
        self, name: str, elapsed_ms: float, critical: bool, source: str
    ) -> None:
        entry = PerformanceLogEntry(
            module=name,
            load_ms=round(elapsed_ms, 3),
            critical=critical,
            timestamp=int(time.time() * 1000),
        )
        try:
            # file-backed stores write to disk; run that on a worker thread
            await asyncio.to_thread(self._perf.append, entry)
        except Exception:  # noqa: BLE001
            logger.warning("could not persist load timing for %s", name, exc_info=True)
        emit(
            ModuleLoaded(
                module=name, load_ms=entry.load_ms, source=source, critical=critical
            )
        )
        if elapsed_ms > self._cfg.slow_load_ms:
            logger.warning("Slow module load: %s took %.2fms", name, elapsed_ms)
            emit(
                ModuleSlowLoad(
                    module=name,
                    load_ms=entry.load_ms,
                    threshold_ms=self._cfg.slow_load_ms,
                )
            )

    # --- Startup -------------------------------------------------------------
    async def preload_critical_modules(self) -> Dict[str, str]:
        """Load the critical set concurrently; report source per module."""
        t0 = self._clock()
        names = list(self.critical_modules)
        results = await asyncio.gather(
            *(self.load_module(n, critical=True) for n in names),
            return_exceptions=True,
        )
        report: Dict[str, str] = {}
        for n, res in zip(names, results):
            if isinstance(res, BaseException):
                report[n] = "failed"
            else:
                report[n] = self._state.sources.get(n, "empty")
        degraded = [n for n, src in report.items() if src in ("stub", "empty", "failed")]
        if degraded:
            logger.error("Failed to preload critical modules: %s", ", ".join(degraded))
        else:
            logger.info("Critical modules preloaded successfully")
        emit(
            CriticalModulesPreloaded(
                modules=names,
                fallback_count=len(degraded),
                duration_ms=round((self._clock() - t0) * 1000.0, 3),
            )
        )
        return report

    # --- Lazy loading --------------------------------------------------------
    def setup_lazy_loading(self) -> None:
        if self._document is None:
            raise RuntimeError("lazy loading needs a document")
        if self._observer is not None:
            self._observer.disconnect()
        self._observer = IntersectionObserver(
            self._document,
            self._on_intersection,
            root_margin_px=self._cfg.lazy_root_margin_px,
        )
        for element in self._document.query_all(LAZY_ATTR):
            self._observer.observe(element)

    def observe(self, element: Element) -> None:
        """Start watching an element added after setup."""
        if self._observer is not None and element.has_attribute(LAZY_ATTR):
            self._observer.observe(element)

    def _on_intersection(self, entries: List[IntersectionEntry]) -> None:
        for entry in entries:
            if not entry.is_intersecting:
                continue
            element = entry.target
            # fires at most once per element
            if self._observer is not None:
                self._observer.unobserve(element)
            name = element.get_attribute(LAZY_ATTR)
            if not name:
                continue
            self._schedule(
                lambda el=element, n=name: self._lazy_load(el, n)
            )

    async def _lazy_load(self, element: Element, name: str) -> bool:
        module = await self.load_module(name)
        return await self.initialize_module_for_element(element, module, name)

    async def initialize_module_for_element(
        self, element: Element, module: Any, name: str
    ) -> bool:
        desc = self.descriptor(name)
        try:
            widget = getattr(module, desc.widget, None) if desc and desc.widget else None
            init = getattr(module, "init", None)
            result: Any = None
            if widget is not None and callable(widget):
                element.props[name] = widget(element)
            elif callable(init):
                result = init(element)
            elif inspect.isclass(module):
                element.props[name] = module(element)
            if inspect.isawaitable(result):
                await result
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to initialize module %s: %s", name, e)
            emit(
                ModuleInitFailed(
                    module=name,
                    error_type=validate_error_type(map_exception(e, "module.init")),
                    message=str(e),
                    element_id=element.uid,
                )
            )
            return False
        element.class_list.add(LOADED_CLASS)
        element.remove_attribute(LAZY_ATTR)
        return True

    # --- Prefetch ------------------------------------------------------------
    def setup_prefetch_on_interaction(self) -> None:
        if self._document is None:
            raise RuntimeError("prefetch on interaction needs a document")
        self._document.add_event_listener("mouseover", self._on_interaction)
        self._document.add_event_listener("focusin", self._on_interaction)

    def _on_interaction(self, event: Any) -> None:
        element = event.target.closest(PREFETCH_ATTR)
        if element is None:
            return
        name = element.get_attribute(PREFETCH_ATTR)
        if not name or name in self._state.loaded or name in self._state.in_flight:
            return
        self._schedule(lambda n=name: self.prefetch_module(n))

    async def prefetch_module(self, name: str) -> PrefetchResult:
        if name in self._state.loaded:
            result = PrefetchResult(name, "cached")
        elif name in self._state.in_flight:
            result = PrefetchResult(name, "in-flight")
        else:
            try:
                await self.load_module(name)
                source = self._state.sources.get(name)
                status: PrefetchStatus = (
                    "fallback" if source in ("stub", "empty") else "loaded"
                )
                result = PrefetchResult(name, status)
                logger.info("Prefetched module: %s", name)
            except Exception as e:  # noqa: BLE001
                logger.error("Failed to prefetch module %s: %s", name, e)
                result = PrefetchResult(
                    name,
                    "failed",
                    error_type=validate_error_type("prefetch-failed"),
                    message=str(e),
                )
        emit(
            ModulePrefetched(
                module=name, status=result.status, error_type=result.error_type
            )
        )
        return result

    # --- Background scheduling ----------------------------------------------
    def _schedule(
        self, factory: Callable[[], Awaitable[Any]]
    ) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet (constructed outside async code): run on start()
            self._deferred.append(factory)
            return None
        task = loop.create_task(factory())
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "background module task failed", exc_info=task.exception()
            )

    # --- Public API ----------------------------------------------------------
    async def require(self, name: str) -> Any:
        return await self.load_module(name)

    def is_loaded(self, name: str) -> bool:
        return name in self._state.loaded

    def preload(self, names: str | Iterable[str]) -> List[asyncio.Task]:
        if isinstance(names, str):
            names = [names]
        tasks = []
        for n in names:
            task = self._schedule(lambda n=n: self.prefetch_module(n))
            if task is not None:
                tasks.append(task)
        return tasks

    def get_performance_data(self) -> List[Dict[str, Any]]:
        return self._perf.entries()

    def clear_cache(self) -> None:
        cleared = self._state.reset()
        self._perf.clear()
        logger.info("module cache cleared (%d modules)", cleared)
        emit(ModuleCacheCleared(cleared=cleared))

    # --- Introspection -------------------------------------------------------
    def source_of(self, name: str) -> Optional[ModuleSource]:
        return self._state.sources.get(name)

    def loaded_names(self) -> List[str]:
        return list(self._state.loaded.keys())

    def registered_names(self) -> List[str]:
        return list(self._registry.keys())

    def info(self) -> dict:
        return {
            "critical": list(self.critical_modules),
            "registered": self.registered_names(),
            "loaded": self.loaded_names(),
            "in_flight": list(self._state.in_flight.keys()),
            "sources": dict(self._state.sources),
            "started": self._started,
        }


async def create_module_loader(**kwargs: Any) -> ModuleLoader:
    """Build a loader and preload its critical modules."""
    loader = ModuleLoader(**kwargs)
    await loader.start()
    return loader


__all__ = [
    "ModuleLoader",
    "ModuleLoaderState",
    "PrefetchResult",
    "create_module_loader",
    "import_module_async",
    "load_legacy_file",
    "LAZY_ATTR",
    "PREFETCH_ATTR",
    "LOADED_CLASS",
]
