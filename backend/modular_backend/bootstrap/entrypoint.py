"""Entry point initialiser: discovers every module package and collects
what each contributes into an `InitialiserBag`.

All the reflection work lives in `discovery`; this class is only the
orchestration around it.
"""

from __future__ import annotations

from types import ModuleType
from typing import Iterable

from .bag import InitialiserBag
from .discovery import (
    discover_db_schemas,
    discover_initialisers,
    discover_mapper_profiles,
    discover_module_packages,
    discover_routers,
    discover_service_configurers,
    discover_services,
)
from .ordering import topological_sort
from .startup_log import StartupLog


class EntryPointInitialiser:
    def __init__(self, prefixes: Iterable[str]):
        self.prefixes = tuple(prefixes)

    def initialize(self, entry_point: ModuleType, configuration, log: StartupLog) -> InitialiserBag:
        """Discover, sort and process all module packages reachable from `entry_point`."""
        log.info("=== DISCOVERING MODULES ===")
        found = discover_module_packages(entry_point, self.prefixes)

        def on_cycle(module_name: str, dependency: str) -> None:
            log.debug(f"Dependency cycle between {module_name} and {dependency}; keeping discovery order")

        ordered = topological_sort(found.values(), on_cycle=on_cycle)
        log.info(f"Found {len(ordered)} module packages in dependency order:")
        for index, module in enumerate(ordered):
            log.info(f"  [{index}] {module.__name__}")

        log.info("=== PROCESSING MODULES ===")
        bag = InitialiserBag(module_name="Application")
        for module in ordered:
            self._process_module(module, bag, log)

        log.info("=== INITIALIZATION COMPLETE ===")
        counts = bag.counts()
        log.info(
            f"Services: {counts['services']}, Mappers: {counts['mappers']}, "
            f"Schemas: {counts['schemas']}, Configurers: {counts['configurers']}, "
            f"Routers: {counts['routers']}"
        )
        return bag

    def _process_module(self, module: ModuleType, bag: InitialiserBag, log: StartupLog) -> None:
        bag.modules.append(module.__name__)
        log.debug(f"Processing: {module.__name__}")

        initialisers = discover_initialisers(module, log)
        services = discover_services(module, self.prefixes, log)
        mappers = discover_mapper_profiles(module)
        schemas = discover_db_schemas(module, log)
        configurers = discover_service_configurers(module, log)
        routers = discover_routers(module)

        bag.initialisers.extend(initialisers)
        bag.local_services.extend(services)
        bag.mapper_profiles.extend(mappers)
        bag.db_schemas.extend(schemas)
        bag.service_configurers.extend(configurers)
        bag.routers.extend(routers)

        if services or mappers or schemas or configurers or routers or initialisers:
            log.info(
                f"  {module.__name__} -> Services: {len(services)}, Mappers: {len(mappers)}, "
                f"Schemas: {len(schemas)}, Configurers: {len(configurers)}, Routers: {len(routers)}"
            )
            for descriptor in services:
                bag.notes.append(f"{module.__name__}: {descriptor.describe()}")
        else:
            log.debug(f"  {module.__name__} -> (empty module)")
