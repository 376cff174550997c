"""Import dependency graph for internal packages (layering guardrail).

Parses .py files under a source root with ``ast`` and collects edges between
project-internal modules (names starting with one of ``prefixes``). Used in
tests to enforce:
  - No cycles between modules.
  - No forbidden edges (foundation packages never reach the loader or
    feature code).
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

DEFAULT_PREFIXES = ("core", "glucobalance")


def _module_name(root: Path, py: Path, package: str) -> str:
    rel = py.relative_to(root).with_suffix("").as_posix().replace("/", ".")
    if rel.endswith(".__init__"):
        rel = rel[: -len(".__init__")]
    elif rel == "__init__":
        return package
    return f"{package}.{rel}"


def _resolve_relative(module: str, node: ast.ImportFrom, is_pkg: bool) -> str:
    parts = module.split(".")
    base = parts if is_pkg else parts[:-1]
    if node.level > 1:
        base = base[: -(node.level - 1)]
    return ".".join(base + ([node.module] if node.module else []))


def build_import_graph(
    root: str | Path = "core",
    package: str | None = None,
    prefixes: Iterable[str] = DEFAULT_PREFIXES,
) -> Dict[str, Set[str]]:
    root_path = Path(root)
    package = package or root_path.name
    wanted = tuple(prefixes)
    edges: Dict[str, Set[str]] = {}

    def internal(name: str) -> bool:
        return any(name == p or name.startswith(p + ".") for p in wanted)

    for py in root_path.rglob("*.py"):
        if "__pycache__" in py.parts:
            continue
        mod = _module_name(root_path, py, package)
        try:
            tree = ast.parse(py.read_text(encoding="utf-8"))
        except SyntaxError:
            continue
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                targets = [n.name for n in node.names]
            elif isinstance(node, ast.ImportFrom):
                if node.level:
                    targets = [
                        _resolve_relative(mod, node, py.name == "__init__.py")
                    ]
                else:
                    targets = [node.module or ""]
            else:
                continue
            for tgt in targets:
                if internal(tgt) and tgt != mod:
                    edges.setdefault(mod, set()).add(tgt)
    for n in list(edges.keys()):
        for m in edges[n]:
            edges.setdefault(m, set())
    return edges


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, [])):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "detect_cycles",
    "forbidden_edges",
]
