"""Render docs/Generated-Events.md from the event dataclasses in core.events.

Optional fields (those with a default) are suffixed with ``?``.

Usage:
  python scripts/generate_events_registry.py            # print
  python scripts/generate_events_registry.py --write    # update docs
  python scripts/generate_events_registry.py --check    # exit 1 on drift
"""
from __future__ import annotations

import argparse
import importlib
import inspect
import sys
from dataclasses import MISSING, fields, is_dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, List, Type

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover
    sys.path.insert(0, str(ROOT))

OUTPUT = ROOT / "docs" / "Generated-Events.md"


def load_events_module() -> ModuleType:
    return importlib.import_module("core.events")


def iter_event_classes(mod: ModuleType) -> List[Type[Any]]:
    base = getattr(mod, "BaseEvent")
    found = [
        obj
        for _, obj in inspect.getmembers(mod, inspect.isclass)
        if obj is not base and issubclass(obj, base) and is_dataclass(obj)
    ]
    return sorted(found, key=lambda c: c.__name__)


def _field_label(f: Any) -> str:
    optional = f.default is not MISSING or f.default_factory is not MISSING
    return f"{f.name}?" if optional else f.name


def format_table(classes: List[Type[Any]]) -> str:
    rows = [
        f"| {cls.__name__} | {', '.join(_field_label(f) for f in fields(cls))} |"
        for cls in classes
    ]
    return "\n".join(
        [
            "# Generated Events Registry",
            "",
            "Fields marked `?` are optional.",
            "",
            "| Event | Fields |",
            "|-------|--------|",
            *rows,
            "",
            "Generated automatically by scripts/generate_events_registry.py",
        ]
    )


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--write", action="store_true")
    mode.add_argument("--check", action="store_true")
    args = parser.parse_args(argv)

    text = format_table(iter_event_classes(load_events_module())) + "\n"
    if args.check:
        current = OUTPUT.read_text(encoding="utf-8") if OUTPUT.exists() else ""
        if current != text:
            print(f"{OUTPUT.relative_to(ROOT)} is out of date", file=sys.stderr)
            return 1
        return 0
    if args.write:
        OUTPUT.write_text(text, encoding="utf-8")
        return 0
    sys.stdout.write(text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
