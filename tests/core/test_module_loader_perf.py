import asyncio
import itertools
import logging
import threading
from types import SimpleNamespace

from core import metrics
from core.config.schemas.loader import LoaderConfig
from core.modules import ModuleLoader, PerformanceLog, PerformanceLogEntry
from core.storage import LocalStore


async def _importer(path):
    return SimpleNamespace(path=path)


async def _failing_importer(path):
    raise ImportError(path)


def test_perf_entry_shape():
    async def run():
        loader = ModuleLoader(store=LocalStore(), importer=_importer)
        await loader.load_module("ai")
        return loader.get_performance_data()

    entries = asyncio.run(run())
    assert len(entries) == 1
    entry = entries[0]
    assert set(entry) == {"module", "loadTime", "isCritical", "timestamp"}
    assert entry["module"] == "ai"
    assert entry["isCritical"] is False
    assert entry["loadTime"] >= 0
    assert isinstance(entry["timestamp"], int)


def test_fallback_loads_are_logged_too(tmp_path):
    async def run():
        loader = ModuleLoader(
            store=LocalStore(), importer=_failing_importer, legacy_dir=tmp_path
        )
        await loader.load_module("ai")
        return loader.get_performance_data()

    entries = asyncio.run(run())
    assert [e["module"] for e in entries] == ["ai"]


def test_perf_log_keeps_most_recent_entries():
    cfg = LoaderConfig(perf_log_capacity=3)

    async def run():
        loader = ModuleLoader(config=cfg, store=LocalStore(), importer=_importer)
        for name in ["m-one", "m-two", "m-three", "m-four", "m-five"]:
            await loader.load_module(name)
        return loader.get_performance_data()

    entries = asyncio.run(run())
    assert [e["module"] for e in entries] == ["m-three", "m-four", "m-five"]


def test_perf_log_persists_across_instances(tmp_path):
    store = LocalStore(tmp_path)

    async def run():
        await ModuleLoader(store=store, importer=_importer).load_module("ai")

    asyncio.run(run())
    fresh = ModuleLoader(store=LocalStore(tmp_path), importer=_importer)
    assert [e["module"] for e in fresh.get_performance_data()] == ["ai"]


def test_slow_load_warns(caplog):
    # every clock read advances two seconds
    ticks = itertools.count(0.0, 2.0)

    async def run():
        loader = ModuleLoader(
            store=LocalStore(), importer=_importer, clock=lambda: next(ticks)
        )
        await loader.load_module("progress-dashboard")
        return loader.get_performance_data()

    with caplog.at_level(logging.WARNING, logger="glucobalance.loader"):
        entries = asyncio.run(run())
    assert entries[0]["loadTime"] == 2000.0
    assert any("Slow module load: progress-dashboard" in r.message for r in caplog.records)
    counters = metrics.snapshot()["counters"]
    assert counters["module_slow_load_total{module=progress-dashboard}"] == 1


def test_fast_load_does_not_warn(caplog):
    async def run():
        loader = ModuleLoader(
            store=LocalStore(), importer=_importer, clock=lambda: 0.0
        )
        await loader.load_module("ai")

    with caplog.at_level(logging.WARNING, logger="glucobalance.loader"):
        asyncio.run(run())
    assert not any("Slow module load" in r.message for r in caplog.records)


def test_corrupt_perf_log_reads_as_empty():
    store = LocalStore()
    store.set_item("glucobalance_module_perf", "{not json")
    log = PerformanceLog(store)
    assert log.entries() == []
    log.append(PerformanceLogEntry("ai", 1.5, False, 1))
    assert log.entries() == [
        {"module": "ai", "loadTime": 1.5, "isCritical": False, "timestamp": 1}
    ]


def test_default_capacity_keeps_fifty_most_recent():
    cfg = LoaderConfig()
    names = [f"m{i}" for i in range(55)]

    async def run():
        loader = ModuleLoader(config=cfg, store=LocalStore(), importer=_importer)
        for name in names:
            await loader.load_module(name)
        return loader.get_performance_data()

    entries = asyncio.run(run())
    assert cfg.perf_log_capacity == 50
    assert [e["module"] for e in entries] == names[5:]


def test_perf_log_write_happens_off_the_loop_thread(tmp_path):
    writers = []

    async def run():
        loader = ModuleLoader(store=LocalStore(tmp_path), importer=_importer)
        append = loader._perf.append

        def recording_append(entry):
            writers.append(threading.get_ident())
            append(entry)

        loader._perf.append = recording_append
        await loader.load_module("ai")
        return threading.get_ident(), loader.get_performance_data()

    loop_thread, entries = asyncio.run(run())
    assert [e["module"] for e in entries] == ["ai"]
    assert writers and loop_thread not in writers
