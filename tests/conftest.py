"""Pytest configuration ensuring project root is importable.

Adds repository root and src/ to sys.path explicitly to avoid
interpreter/path quirks.
"""
from __future__ import annotations

import sys
from pathlib import Path
import os
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolate_config_env(monkeypatch):  # noqa: D401
    """Ensure global config/env/store side effects do not leak between tests.

    - Point GLUCO_CONFIG_DIR at the repo configs (restored afterwards)
    - Keep the LocalStore in memory
    - Clear config cache, metrics and event listeners
    """
    from core import metrics
    from core.config import clear_config_cache
    from core.eventbus import reset_for_tests as reset_bus
    from core.events import reset_listeners_for_tests
    from core.storage import reset_local_store

    for key in [k for k in os.environ if k.startswith("GLUCO__")]:
        monkeypatch.delenv(key)
    monkeypatch.setenv("GLUCO_CONFIG_DIR", str(ROOT / "configs"))
    monkeypatch.setenv("GLUCO__STORAGE__DIR", "null")
    clear_config_cache()
    reset_local_store()
    metrics.reset_for_tests()
    reset_bus()
    reset_listeners_for_tests()
    try:
        yield
    finally:
        clear_config_cache()
        reset_local_store()
        reset_listeners_for_tests()
