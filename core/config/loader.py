"""Configuration loading & validation.

- Per-section schemas live in `core.config.schemas.*`.
- `schema_version` missing -> assume 1, warn.
- AggregatedConfig holds the validated sections.

Precedence (last wins): base.yaml -> overrides.local.yaml -> ENV (GLUCO__*).

Unknown section keys are rejected.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Callable, Dict, Type

import yaml
from core import metrics
from core.errors import validate_error_type
from pydantic import BaseModel, ConfigDict

from .schemas.ai import AIConfig
from .schemas.core import StorageConfig, SystemConfig
from .schemas.loader import LoaderConfig
from .schemas.observability import LoggingConfig


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    loader: LoaderConfig = LoaderConfig()
    storage: StorageConfig = StorageConfig()
    ai: AIConfig = AIConfig()
    logging: LoggingConfig = LoggingConfig()
    system: SystemConfig = SystemConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "GLUCO__"

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "loader": LoaderConfig,
    "storage": StorageConfig,
    "ai": AIConfig,
    "logging": LoggingConfig,
    "system": SystemConfig,
}

logger = logging.getLogger("glucobalance.config")


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _cast_env_value(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    if value.lower() in {"null", "none"}:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if "," in value:
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        target[path_parts[-1]] = _cast_env_value(value)
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        logger.info("config env override path=%s source=env", dotted_path)


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("GLUCO_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if "schema_version" not in data:
        logger.warning("config schema_version missing, assuming 1")
        data["schema_version"] = 1
    return data


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate each known section via its schema class."""
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": "config-invalid"},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


Number = (int, float)

# (dotted path, predicate on the raw value, message); a failing predicate
# is reported as config-out-of-range.
_RANGE_RULES: list[tuple[str, Callable[[Any], bool], str]] = [
    ("loader.slow_load_ms", lambda v: v > 0, ">0 required"),
    ("loader.perf_log_capacity", lambda v: v > 0, ">0 required"),
    ("ai.queue_delay_ms", lambda v: v >= 0, ">=0 required"),
    ("ai.timeout_s", lambda v: v > 0, ">0 required"),
    ("ai.sampling.top_p", lambda v: 0 < v <= 1, "top_p must be 0<..<=1"),
]


def _lookup(raw: Dict[str, Any], dotted: str) -> tuple[Dict[str, Any], str]:
    *parents, leaf = dotted.split(".")
    node: Any = raw
    for part in parents:
        node = node.get(part) if isinstance(node, dict) else None
    return (node if isinstance(node, dict) else {}), leaf


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Clip the lazy-loading margin at 0, then apply ``_RANGE_RULES``.

    Non-numeric values are left for the section schemas to reject.
    """
    loader_raw, leaf = _lookup(raw, "loader.lazy_root_margin_px")
    margin = loader_raw.get(leaf)
    if isinstance(margin, Number) and margin < 0:
        loader_raw[leaf] = 0

    code = validate_error_type("config-out-of-range")
    failed: list[str] = []
    for path, ok, msg in _RANGE_RULES:
        section, leaf = _lookup(raw, path)
        value = section.get(leaf)
        if isinstance(value, bool) or not isinstance(value, Number):
            continue
        if not ok(value):
            metrics.inc("config_validation_errors_total", {"path": path, "code": code})
            failed.append(f"{path}:{code}:{msg}")
    if failed:
        raise ConfigError(f"config validation failed: {', '.join(failed)}")


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        migrated = _migrate_legacy(merged)
        _normalize_and_validate(migrated)
        validated_sub = _validate_sub_schemas(migrated)
        # Sections already validated are attached below; the rest (version,
        # unknown keys) goes through the aggregate schema.
        rest = {k: v for k, v in migrated.items() if k not in validated_sub}
        try:
            agg = AggregatedConfig.model_validate(rest)
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e
        for k, v in validated_sub.items():
            setattr(agg, k, v)
        return agg


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()
