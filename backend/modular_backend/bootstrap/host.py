"""Application host: runs module discovery and the two initialisation phases.

1. preload module packages from disk;
2. discover and process them into an `InitialiserBag`;
3. phase 1 (before build): register services, then run each initialiser's
   `do_before_build`;
4. build the service provider;
5. phase 2 (after build): run service configurers, then each initialiser's
   `do_after_build`.

Failures in phase 2 hooks are logged as errors and skipped.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Optional

from .bag import InitialiserBag
from .container import ServiceProvider, ServiceRegistry
from .discovery import preload_module_packages
from .entrypoint import EntryPointInitialiser
from .startup_log import StartupLog


@dataclass
class Host:
    settings: object
    bag: InitialiserBag
    registry: ServiceRegistry
    provider: ServiceProvider
    log: StartupLog


def build_host(settings, log: Optional[StartupLog] = None, entry_point: Optional[str] = None) -> Host:
    """Discover all modules and build a fully configured service provider."""
    log = log or StartupLog()
    prefixes = settings.MODULE_PACKAGE_PREFIXES
    entry_name = entry_point or settings.MODULES_PACKAGE

    preloaded = preload_module_packages(entry_name, prefixes, settings.MODULES_DIR or None, log)
    log.debug(f"Preloaded {len(preloaded)} module packages from disk")

    entry = importlib.import_module(entry_name)
    bag = EntryPointInitialiser(prefixes).initialize(entry, settings, log)

    log.info("=== PHASE 1: REGISTERING SERVICES ===", tag="phase1")
    registry = ServiceRegistry()
    registry.add_instance(type(settings), settings)
    registry.add_instance(InitialiserBag, bag)
    registry.add_instance(StartupLog, log)
    registry.add_descriptors(bag.local_services)
    for initialiser in bag.initialisers:
        initialiser.do_before_build(registry, settings)
    log.info(f"Registered {len(registry.contracts())} contracts", tag="phase1")

    provider = registry.build()

    log.info("=== PHASE 2: CONFIGURING SERVICES ===", tag="phase2")
    for configurer in bag.service_configurers:
        name = configurer.service_name or type(configurer).__name__
        try:
            configurer.configure_service(provider, settings, log)
            log.info(f"Configured {name}", tag="phase2")
        except Exception as exc:
            log.error(f"Configurer {name} failed: {exc}", tag="phase2")
    for initialiser in bag.initialisers:
        try:
            initialiser.do_after_build(provider, settings)
        except Exception as exc:
            log.error(f"Initialiser {type(initialiser).__module__} failed after build: {exc}", tag="phase2")

    log.info("=== STARTUP COMPLETE ===")
    log.complete()
    return Host(settings=settings, bag=bag, registry=registry, provider=provider, log=log)
