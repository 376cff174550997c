"""Module loader config schema.

No side effects / globals. Cross-field bounds are checked in the config
loader so violations are counted as metrics before raising.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, ConfigDict, field_validator


class LoaderConfig(BaseModel):
    feature_package: str = "glucobalance.features"
    legacy_dir: str = "legacy"
    critical: List[str] = Field(
        default_factory=lambda: ["error-handler", "database", "auth"]
    )
    lazy_root_margin_px: int = 50
    slow_load_ms: float = 1000.0
    perf_log_capacity: int = 50
    perf_log_key: str = "glucobalance_module_perf"

    model_config = ConfigDict(extra="forbid")

    @field_validator("feature_package")
    @classmethod
    def _package_not_empty(cls, v: str) -> str:  # noqa: D401
        if not v.strip():
            raise ValueError("feature_package cannot be empty")
        return v
