import asyncio
from types import SimpleNamespace

import pytest

from core import metrics
from core.modules import LegacyLoadError, ModuleLoader
from core.storage import LocalStore


async def _failing_importer(path):
    raise ImportError(f"No module named {path!r}")


def _loader(tmp_path, **kw):
    kw.setdefault("importer", _failing_importer)
    return ModuleLoader(store=LocalStore(), legacy_dir=tmp_path, **kw)


def _load(loader, name):
    return asyncio.run(loader.load_module(name))


def test_legacy_file_used_when_import_fails(tmp_path):
    (tmp_path / "ai.py").write_text(
        "class _LegacyAI:\n"
        "    name = 'legacy-ai'\n"
        "\n"
        "ai = _LegacyAI()\n",
        encoding="utf-8",
    )
    loader = _loader(tmp_path)
    module = _load(loader, "ai")
    assert module.name == "legacy-ai"
    assert loader.source_of("ai") == "legacy"
    counters = metrics.snapshot()["counters"]
    assert counters["module_fallback_total{error_type=import-failed,module=ai}"] == 1


def test_legacy_missing_export_falls_back_to_stub(tmp_path):
    (tmp_path / "ai.py").write_text("something_else = 1\n", encoding="utf-8")
    loader = _loader(tmp_path)
    module = _load(loader, "ai")
    assert module.generate_content("hello") == "AI service unavailable"
    assert loader.source_of("ai") == "stub"
    counters = metrics.snapshot()["counters"]
    key = "module_fallback_total{error_type=legacy-export-missing,module=ai}"
    assert counters[key] == 1


def test_legacy_file_that_raises_falls_back_to_stub(tmp_path):
    (tmp_path / "mental-health.py").write_text(
        "raise RuntimeError('broken legacy build')\n", encoding="utf-8"
    )
    loader = _loader(tmp_path)
    module = _load(loader, "mental-health")
    assert module.generate_affirmation() == "Stay positive!"
    counters = metrics.snapshot()["counters"]
    key = "module_fallback_total{error_type=legacy-load-failed,module=mental-health}"
    assert counters[key] == 1


@pytest.mark.parametrize(
    "name, attr, expected",
    [
        ("ai", "generate_content", "AI service unavailable"),
        (
            "risk-assessment",
            "calculate_score",
            {"score": None, "category": "unavailable"},
        ),
        ("nutrition-service", "generate_meal_plan", {"meals": []}),
        ("mental-health", "generate_affirmation", "Stay positive!"),
        ("progress-dashboard", "update_charts", None),
        ("doctor-report", "generate_report", {"data": "Report unavailable"}),
    ],
)
def test_stub_surfaces(tmp_path, name, attr, expected):
    loader = _loader(tmp_path)
    module = _load(loader, name)
    assert getattr(module, attr)() == expected
    assert loader.source_of(name) == "stub"


def test_module_without_stub_resolves_to_empty_namespace(tmp_path):
    loader = _loader(tmp_path)
    module = _load(loader, "database")
    assert isinstance(module, SimpleNamespace)
    assert vars(module) == {}
    assert loader.source_of("database") == "empty"
    assert loader.is_loaded("database")


def test_unregistered_name_skips_legacy_step(tmp_path):
    legacy_calls = []

    async def legacy_loader(desc, legacy_dir):
        legacy_calls.append(desc.name)
        raise LegacyLoadError("unreachable")

    loader = _loader(tmp_path, legacy_loader=legacy_loader)
    module = _load(loader, "weather-widget")
    assert vars(module) == {}
    assert legacy_calls == []
    assert loader.descriptor("weather-widget").import_path == (
        "glucobalance.features.weather_widget"
    )


def test_invalid_name_never_reaches_importer(tmp_path):
    calls = []

    async def importer(path):
        calls.append(path)
        return SimpleNamespace()

    loader = _loader(tmp_path, importer=importer)
    module = _load(loader, "Not A Module!")
    assert vars(module) == {}
    assert calls == []
    assert loader.source_of("Not A Module!") == "empty"


def test_real_import_of_feature_package(tmp_path):
    loader = ModuleLoader(store=LocalStore(), legacy_dir=tmp_path)
    module = _load(loader, "mental-health")
    assert loader.source_of("mental-health") == "import"
    assert module.generate_affirmation(5)
