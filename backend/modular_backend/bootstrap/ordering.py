"""Dependency ordering of discovered module packages."""

from __future__ import annotations

from types import ModuleType
from typing import Callable, Dict, Iterable, List, Optional, Set

from .discovery import referenced_modules


def topological_sort(
    modules: Iterable[ModuleType],
    on_cycle: Optional[Callable[[str, str], None]] = None,
) -> List[ModuleType]:
    """Order `modules` so that every module follows the modules it references.

    Only references inside the given set count as dependencies. Siblings are
    visited in name order, so the result is deterministic. A reference back
    to a module that is still being visited closes a cycle; that edge is
    dropped and reported through `on_cycle(module_name, dependency_name)`.
    """
    by_name: Dict[str, ModuleType] = {}
    for module in modules:
        by_name.setdefault(module.__name__, module)

    ordered: List[ModuleType] = []
    done: Set[str] = set()
    visiting: Set[str] = set()

    def visit(name: str) -> None:
        if name in done:
            return
        visiting.add(name)
        for dependency in sorted(referenced_modules(by_name[name]) & by_name.keys()):
            if dependency in visiting:
                if on_cycle is not None:
                    on_cycle(name, dependency)
                continue
            visit(dependency)
        visiting.discard(name)
        done.add(name)
        ordered.append(by_name[name])

    for name in sorted(by_name):
        visit(name)
    return ordered
