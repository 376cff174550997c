"""Static registry of loadable feature modules.

Each ModuleName maps to one descriptor holding everything the loader needs:
where the primary import lives, what a legacy file exports, the stub used
when both fail, and the widget class bound per lazy element. Nothing is
discovered by naming convention except for names absent from the registry.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

DEFAULT_FEATURE_PACKAGE = "glucobalance.features"

_NAME_RE = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$")


@dataclass(frozen=True)
class ModuleDescriptor:
    name: str
    import_path: str
    legacy_export: Optional[str] = None
    stub: Optional[Callable[[], Any]] = None
    # attribute of the loaded module constructed once per lazy element
    widget: Optional[str] = None

    @property
    def legacy_file(self) -> str:
        return f"{self.name}.py"


def is_valid_name(name: str) -> bool:
    return bool(name) and bool(_NAME_RE.match(name))


def snake_name(name: str) -> str:
    return name.replace("-", "_")


# --- stubs (minimal surfaces when a feature cannot be loaded) -------------

def _ai_stub() -> SimpleNamespace:
    return SimpleNamespace(
        generate_content=lambda *a, **kw: "AI service unavailable",
    )


def _nutrition_stub() -> SimpleNamespace:
    return SimpleNamespace(generate_meal_plan=lambda *a, **kw: {"meals": []})


def _mental_health_stub() -> SimpleNamespace:
    return SimpleNamespace(
        generate_affirmation=lambda *a, **kw: "Stay positive!",
    )


def _progress_stub() -> SimpleNamespace:
    return SimpleNamespace(update_charts=lambda *a, **kw: None)


def _risk_assessment_stub() -> SimpleNamespace:
    return SimpleNamespace(
        calculate_score=lambda *a, **kw: {
            "score": None, "category": "unavailable",
        },
    )


def _doctor_report_stub() -> SimpleNamespace:
    return SimpleNamespace(
        generate_report=lambda *a, **kw: {"data": "Report unavailable"},
    )


def _descriptor(
    name: str,
    legacy_export: str,
    stub: Optional[Callable[[], Any]] = None,
    widget: Optional[str] = None,
    package: str = DEFAULT_FEATURE_PACKAGE,
) -> ModuleDescriptor:
    return ModuleDescriptor(
        name=name,
        import_path=f"{package}.{snake_name(name)}",
        legacy_export=legacy_export,
        stub=stub,
        widget=widget,
    )


def build_registry(
    package: str = DEFAULT_FEATURE_PACKAGE,
) -> Dict[str, ModuleDescriptor]:
    """Built-in descriptors rooted at ``package``."""
    entries = [
        _descriptor("error-handler", "errorHandler", package=package),
        _descriptor("database", "database", package=package),
        _descriptor("auth", "auth", package=package),
        _descriptor("ai", "ai", _ai_stub, package=package),
        _descriptor(
            "risk-assessment", "riskAssessment", _risk_assessment_stub,
            package=package,
        ),
        _descriptor(
            "nutrition-service", "nutritionService", _nutrition_stub,
            package=package,
        ),
        _descriptor(
            "mental-health", "mentalHealth", _mental_health_stub,
            package=package,
        ),
        _descriptor(
            "progress-dashboard", "progressDashboard", _progress_stub,
            package=package,
        ),
        _descriptor(
            "doctor-report", "doctorReport", _doctor_report_stub,
            widget="DoctorReportWidget", package=package,
        ),
    ]
    return {d.name: d for d in entries}


def conventional_descriptor(
    name: str, package: str = DEFAULT_FEATURE_PACKAGE
) -> ModuleDescriptor:
    """Descriptor for a name outside the registry: import only, no stub."""
    return ModuleDescriptor(name=name, import_path=f"{package}.{snake_name(name)}")


__all__ = [
    "ModuleDescriptor",
    "build_registry",
    "conventional_descriptor",
    "is_valid_name",
    "snake_name",
    "DEFAULT_FEATURE_PACKAGE",
]
