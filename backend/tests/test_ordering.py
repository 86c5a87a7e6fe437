from types import ModuleType

from modular_backend.bootstrap.discovery import referenced_modules
from modular_backend.bootstrap.ordering import topological_sort


def _module(name, **refs):
    module = ModuleType(name)
    for key, value in refs.items():
        setattr(module, key, value)
    return module


def _names(modules):
    return [m.__name__ for m in modules]


def test_referenced_modules_include_imported_modules_and_class_owners():
    owner = _module("pkg.owner")
    cls = type("Thing", (), {"__module__": "pkg.owner"})
    user = _module("pkg.user", owner=owner, Thing=cls)
    assert referenced_modules(user) == {"pkg.owner"}


def test_dependencies_come_first():
    a = _module("pkg.a")
    b = _module("pkg.b", a=a)
    c = _module("pkg.c", b=b)
    assert _names(topological_sort([c, b, a])) == ["pkg.a", "pkg.b", "pkg.c"]


def test_independent_modules_are_ordered_by_name():
    z = _module("pkg.z")
    y = _module("pkg.y")
    x = _module("pkg.x")
    assert _names(topological_sort([z, x, y])) == ["pkg.x", "pkg.y", "pkg.z"]


def test_references_outside_the_set_are_ignored():
    outside = _module("elsewhere")
    a = _module("pkg.a", outside=outside)
    assert _names(topological_sort([a])) == ["pkg.a"]


def test_cycles_are_broken_and_reported():
    a = _module("pkg.a")
    b = _module("pkg.b", a=a)
    a.b = b
    cycles = []
    ordered = topological_sort([a, b], on_cycle=lambda m, d: cycles.append((m, d)))
    assert _names(ordered) == ["pkg.b", "pkg.a"]
    assert cycles == [("pkg.b", "pkg.a")]


def test_duplicates_appear_once():
    a = _module("pkg.a")
    b = _module("pkg.b", a=a)
    ordered = topological_sort([a, b, a, b])
    assert _names(ordered) == ["pkg.a", "pkg.b"]
