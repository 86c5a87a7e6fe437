"""Discovery of module packages and of the types they contribute.

`inspect` and `importlib` stand in for assembly reflection: a "module
package" is any imported Python module named by one of the configured
prefixes or nested below one. Import and instantiation failures are logged
and skipped so that one broken module never prevents startup.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import sys
from collections import deque
from pathlib import Path
from types import ModuleType
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from fastapi import APIRouter
from sqlalchemy import MetaData

from .contracts import (
    LIFECYCLE_MARKERS,
    EntityConfiguration,
    HasLifecycle,
    MapperProfile,
    ModuleInitialiser,
    ServiceConfigurer,
    ServiceDescriptor,
)
from .startup_log import StartupLog

logger = logging.getLogger("modular_backend.discovery")

SCHEMA_SEGMENTS = ("models", "persistence")


def is_module_package(name: Optional[str], prefixes: Iterable[str]) -> bool:
    """Return True if `name` belongs to one of our module packages."""
    if not name:
        return False
    lowered = name.lower()
    for prefix in prefixes:
        p = prefix.lower()
        if lowered == p or lowered.startswith(p + "."):
            return True
    return False


def _import_quietly(name: str, log: Optional[StartupLog]) -> bool:
    try:
        importlib.import_module(name)
        return True
    except Exception as exc:
        message = f"Failed to import module {name}: {exc}"
        if log is not None:
            log.warning(message, tag="discovery")
        else:
            logger.warning(message)
        return False


def preload_module_packages(
    root_package: str,
    prefixes: Iterable[str],
    modules_dir: Optional[str] = None,
    log: Optional[StartupLog] = None,
) -> List[str]:
    """Import every module package so later discovery can see it.

    Discovery only looks at imported modules, so this must run first. Two
    locations are searched: the submodules of `root_package` (development
    layout) and each subdirectory of `modules_dir` (packaged layout, one
    directory per installed module). Returns the names newly imported.
    """
    prefixes = tuple(prefixes)
    loaded = set(sys.modules)
    imported: List[str] = []

    if root_package not in loaded and _import_quietly(root_package, log):
        imported.append(root_package)
        loaded.add(root_package)
    root = sys.modules.get(root_package)
    if root is not None and hasattr(root, "__path__"):
        walker = pkgutil.walk_packages(
            root.__path__,
            prefix=f"{root_package}.",
            onerror=lambda failed: _note(log, f"Failed to import module {failed}"),
        )
        for info in walker:
            if info.name in loaded or not is_module_package(info.name, prefixes):
                continue
            if _import_quietly(info.name, log):
                imported.append(info.name)
            loaded.add(info.name)

    if modules_dir:
        base = Path(modules_dir)
        if base.is_dir():
            for module_dir in sorted(p for p in base.iterdir() if p.is_dir()):
                path = str(module_dir)
                if path not in sys.path:
                    sys.path.append(path)
                for info in pkgutil.iter_modules([path]):
                    if info.name in loaded or not is_module_package(info.name, prefixes):
                        continue
                    if _import_quietly(info.name, log):
                        imported.append(info.name)
                    loaded.add(info.name)
    return imported


def referenced_modules(module: ModuleType) -> Set[str]:
    """Names of the modules referenced from `module`'s namespace.

    A module references the modules it imports, and the defining modules of
    the classes and functions it imports.
    """
    names: Set[str] = set()
    for value in list(vars(module).values()):
        if inspect.ismodule(value):
            names.add(value.__name__)
        elif inspect.isclass(value) or inspect.isfunction(value):
            owner = getattr(value, "__module__", None)
            if owner:
                names.add(owner)
    names.discard(module.__name__)
    return names


def discover_module_packages(entry_point: ModuleType, prefixes: Iterable[str]) -> Dict[str, ModuleType]:
    """Discover all module packages starting from `entry_point`.

    Strategy 1 walks references breadth-first from the entry point; strategy
    2 then picks up any imported module package the walk missed (modules
    imported dynamically or only referenced indirectly).
    """
    prefixes = tuple(prefixes)
    found: Dict[str, ModuleType] = {}
    queue = deque([entry_point])
    while queue:
        current = queue.popleft()
        if current.__name__ in found or not is_module_package(current.__name__, prefixes):
            continue
        found[current.__name__] = current
        for name in sorted(referenced_modules(current)):
            candidate = sys.modules.get(name)
            if candidate is not None and name not in found and is_module_package(name, prefixes):
                queue.append(candidate)

    for name, module in list(sys.modules.items()):
        if module is not None and name not in found and is_module_package(name, prefixes):
            found[name] = module
    return found


def _defined_classes(module: ModuleType) -> List[type]:
    return [
        obj
        for _name, obj in inspect.getmembers(module, inspect.isclass)
        if obj.__module__ == module.__name__
    ]


def _concrete_subclasses(module: ModuleType, base: type) -> List[type]:
    return [
        cls for cls in _defined_classes(module)
        if issubclass(cls, base) and cls is not base and not inspect.isabstract(cls)
    ]


def _note(log: Optional[StartupLog], message: str) -> None:
    if log is not None:
        log.warning(message, tag="discovery")
    else:
        logger.warning(message)


def discover_initialisers(module: ModuleType, log: Optional[StartupLog] = None) -> List[ModuleInitialiser]:
    """Instantiate the `ModuleInitialiser` classes defined in `module`."""
    initialisers = []
    for cls in _concrete_subclasses(module, ModuleInitialiser):
        try:
            initialisers.append(cls())
        except Exception as exc:
            _note(log, f"Failed to instantiate initialiser {cls.__name__}: {exc}")
    return initialisers


def _contracts_for(cls: type, prefixes: Tuple[str, ...]) -> List[type]:
    contracts = []
    for base in cls.__mro__[1:]:
        if base in LIFECYCLE_MARKERS or base is object:
            continue
        if is_module_package(base.__module__, prefixes):
            contracts.append(base)
    return contracts


def discover_services(module: ModuleType, prefixes: Iterable[str], log: Optional[StartupLog] = None) -> List[ServiceDescriptor]:
    """Build service descriptors for lifecycle-marked classes in `module`.

    Each class is registered under itself and under every contract base it
    derives from (a base class defined in a module package).
    """
    prefixes = tuple(prefixes)
    descriptors = []
    for cls in _concrete_subclasses(module, HasLifecycle):
        if cls in LIFECYCLE_MARKERS:
            continue
        lifecycle = getattr(cls, "lifecycle", None)
        if lifecycle is None:
            _note(log, f"Service {cls.__name__} has no lifecycle marker")
            continue
        descriptors.append(ServiceDescriptor(cls, cls, lifecycle))
        for contract in _contracts_for(cls, prefixes):
            descriptors.append(ServiceDescriptor(contract, cls, lifecycle))
    return descriptors


def discover_mapper_profiles(module: ModuleType) -> List[Tuple[type, str]]:
    """Return `(profile_class, description)` pairs defined in `module`."""
    return [
        (cls, cls.description or cls.__name__)
        for cls in _concrete_subclasses(module, MapperProfile)
        if hasattr(cls, "source") and hasattr(cls, "target")
    ]


def is_persistence_module(name: str) -> bool:
    return any(segment in SCHEMA_SEGMENTS for segment in name.split("."))


def discover_db_schemas(module: ModuleType, log: Optional[StartupLog] = None) -> List[Callable[[MetaData], None]]:
    """Return one schema action per `EntityConfiguration` in `module`.

    Only persistence modules are scanned. Each action instantiates its
    configuration and applies it to the entity's table in the given metadata.
    """
    if not is_persistence_module(module.__name__):
        return []
    actions = []
    for cls in _concrete_subclasses(module, EntityConfiguration):
        entity = getattr(cls, "entity", None)
        table = getattr(entity, "__table__", None)
        if table is None:
            _note(log, f"Entity configuration {cls.__name__} does not target a table")
            continue

        def apply(metadata: MetaData, _cls=cls, _table_name=table.name) -> None:
            target = metadata.tables.get(_table_name)
            if target is None:
                raise LookupError(f"table {_table_name} is not part of the metadata")
            _cls().configure(target)

        apply.configuration = cls
        actions.append(apply)
        if log is not None:
            log.debug(f"    Schema: {cls.__name__} -> {table.name}", tag="schema")
    return actions


def discover_service_configurers(module: ModuleType, log: Optional[StartupLog] = None) -> List[ServiceConfigurer]:
    """Instantiate the `ServiceConfigurer` classes defined in `module`."""
    configurers = []
    for cls in _concrete_subclasses(module, ServiceConfigurer):
        try:
            configurer = cls()
        except Exception as exc:
            _note(log, f"Could not load service configurer {cls.__name__}: {exc}")
            continue
        configurers.append(configurer)
        if log is not None:
            log.debug(f"    ServiceConfigurer: {configurer.service_name or cls.__name__}", tag="discovery")
    return configurers


def discover_routers(module: ModuleType) -> List[APIRouter]:
    """Return module-level routers of a controllers module."""
    if not module.__name__.endswith("controllers"):
        return []
    return [obj for obj in vars(module).values() if isinstance(obj, APIRouter)]
