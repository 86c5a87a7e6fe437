import importlib
import sys
from types import ModuleType

import pytest
from fastapi import APIRouter

from modular_backend.bootstrap import Lifecycle, ServiceConfigurer, StartupLog
from modular_backend.bootstrap.discovery import (
    discover_db_schemas,
    discover_initialisers,
    discover_module_packages,
    discover_routers,
    discover_service_configurers,
    discover_services,
    is_module_package,
    preload_module_packages,
)
from modular_backend.bootstrap.entrypoint import EntryPointInitialiser


def test_is_module_package_matches_prefixes_case_insensitively():
    assert is_module_package("App.Modules.Sys", ["app.modules"])
    assert not is_module_package("fastapi.routing", ["app.modules"])
    assert not is_module_package(None, ["app.modules"])
    assert not is_module_package("", ["app.modules"])


def test_is_module_package_matches_whole_segments():
    assert is_module_package("app.modules", ["app.modules"])
    assert is_module_package("app.modules.sys.services", ["app.modules"])
    assert not is_module_package("app.modules_extra", ["app.modules"])
    assert not is_module_package("app.modulesx.sys", ["app.modules"])


def test_preload_imports_every_submodule_once(fake_modules):
    log = StartupLog()
    imported = preload_module_packages(fake_modules, [fake_modules], log=log)
    assert f"{fake_modules}.alpha.services" in imported
    assert f"{fake_modules}.beta.consumers" in imported
    assert f"{fake_modules}.broken" not in imported
    assert f"{fake_modules}.alpha.services" in sys.modules

    warnings = [e for e in log.entries if e.level == "WARNING" and e.tag == "discovery"]
    assert any("broken" in e.message for e in warnings)

    assert preload_module_packages(fake_modules, [fake_modules], log=log) == []


def test_preload_imports_packages_from_modules_dir(fake_modules, tmp_path):
    plugin = f"{fake_modules}_plugin"
    package_dir = tmp_path / "installed" / "plugin-1" / plugin
    package_dir.mkdir(parents=True)
    (package_dir / "__init__.py").write_text("VALUE = 42\n")
    (tmp_path / "installed" / "not-a-dir.txt").write_text("ignored")
    importlib.invalidate_caches()

    imported = preload_module_packages(fake_modules, [fake_modules, plugin], modules_dir=str(tmp_path / "installed"))
    assert plugin in imported
    assert sys.modules[plugin].VALUE == 42


def test_discover_module_packages_walks_references_then_sys_modules(fake_modules):
    preload_module_packages(fake_modules, [fake_modules])
    entry = sys.modules[fake_modules]
    found = discover_module_packages(entry, [fake_modules])
    assert f"{fake_modules}.alpha.services" in found
    assert f"{fake_modules}.beta.consumers" in found
    assert all(name.startswith(fake_modules) for name in found)
    assert "modular_backend.bootstrap" not in found


def test_discover_services_registers_class_and_contracts(fake_modules):
    preload_module_packages(fake_modules, [fake_modules])
    module = sys.modules[f"{fake_modules}.alpha.services"]
    descriptors = discover_services(module, [fake_modules])
    pairs = {(d.contract.__name__, d.implementation.__name__, d.lifecycle) for d in descriptors}
    assert pairs == {
        ("EnglishGreeter", "EnglishGreeter", Lifecycle.SINGLETON),
        ("Greeter", "EnglishGreeter", Lifecycle.SINGLETON),
        ("Clock", "Clock", Lifecycle.TRANSIENT),
    }


def test_discover_initialisers_and_configurers(fake_modules):
    preload_module_packages(fake_modules, [fake_modules])
    module = sys.modules[f"{fake_modules}.alpha.services"]
    assert [type(i).__name__ for i in discover_initialisers(module)] == ["AlphaInitialiser"]
    assert [c.service_name for c in discover_service_configurers(module)] == ["Failing"]


def test_abstract_configurers_are_not_discovered():
    module = ModuleType("pkg.configurers")

    class Incomplete(ServiceConfigurer):
        __module__ = "pkg.configurers"
        service_name = "Incomplete"

    class Complete(ServiceConfigurer):
        __module__ = "pkg.configurers"
        service_name = "Complete"

        def configure_service(self, provider, configuration, log):
            pass

    module.Incomplete = Incomplete
    module.Complete = Complete
    assert [c.service_name for c in discover_service_configurers(module)] == ["Complete"]
    with pytest.raises(TypeError):
        Incomplete()


def test_imported_classes_are_not_discovered_twice(fake_modules):
    preload_module_packages(fake_modules, [fake_modules])
    consumers = sys.modules[f"{fake_modules}.beta.consumers"]
    descriptors = discover_services(consumers, [fake_modules])
    assert [d.implementation.__name__ for d in descriptors] == ["Welcome"]


def test_schemas_only_come_from_persistence_modules():
    assert discover_db_schemas(ModuleType("pkg.services")) == []


def test_discover_routers_only_in_controller_modules():
    controllers = ModuleType("pkg.controllers")
    controllers.router = APIRouter()
    other = ModuleType("pkg.views")
    other.router = APIRouter()
    assert discover_routers(controllers) == [controllers.router]
    assert discover_routers(other) == []


def test_entry_point_initialiser_collects_in_dependency_order(fake_modules):
    preload_module_packages(fake_modules, [fake_modules])
    log = StartupLog()
    bag = EntryPointInitialiser([fake_modules]).initialize(sys.modules[fake_modules], None, log)

    assert bag.modules.index(f"{fake_modules}.alpha.services") < bag.modules.index(f"{fake_modules}.beta.consumers")
    assert len(bag.modules) == len(set(bag.modules))
    assert bag.counts()["services"] == 4
    assert bag.counts()["configurers"] == 1
    assert bag.counts()["initialisers"] == 1

    messages = [e.message for e in log.entries]
    assert messages[0] == "=== DISCOVERING MODULES ==="
    assert "=== PROCESSING MODULES ===" in messages
    assert "=== INITIALIZATION COMPLETE ===" in messages
