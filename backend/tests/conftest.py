from pathlib import Path
import importlib
import os
import sys
import tempfile
import uuid

import pytest

# Point the application at a throwaway database before it is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="modular_backend_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("ENV", "development")


ALPHA_SERVICES = '''
from modular_backend.bootstrap import ModuleInitialiser, ServiceConfigurer, SingletonLifecycle, TransientLifecycle


class Greeter:
    def greet(self, name):
        raise NotImplementedError


class EnglishGreeter(Greeter, SingletonLifecycle):
    def greet(self, name):
        return "Hello " + name


class Clock(TransientLifecycle):
    pass


class Extra:
    pass


class AlphaInitialiser(ModuleInitialiser):
    calls = []

    def do_before_build(self, registry, settings):
        AlphaInitialiser.calls.append("before")
        registry.add_singleton(Extra)

    def do_after_build(self, provider, settings):
        AlphaInitialiser.calls.append(provider.resolve(Greeter).greet("after"))


class FailingConfigurer(ServiceConfigurer):
    service_name = "Failing"

    def configure_service(self, provider, configuration, log):
        raise RuntimeError("configurer exploded")
'''

BETA_CONSUMERS = '''
from {pkg}.alpha.services import Greeter
from modular_backend.bootstrap import ScopedLifecycle


class Welcome(ScopedLifecycle):
    def __init__(self, greeter: Greeter):
        self.greeter = greeter

    def message(self):
        return self.greeter.greet("world")
'''


@pytest.fixture
def fake_modules(tmp_path, monkeypatch):
    """A throwaway module package on sys.path; yields its name.

    Layout: ``alpha.services`` defines a contract, services, an initialiser
    and a failing configurer; ``beta.consumers`` depends on alpha;
    ``broken`` fails to import.
    """
    name = f"fakemods_{uuid.uuid4().hex[:8]}"
    files = {
        "__init__.py": "",
        "alpha/__init__.py": "",
        "alpha/services.py": ALPHA_SERVICES,
        "beta/__init__.py": "",
        "beta/consumers.py": BETA_CONSUMERS.format(pkg=name),
        "broken.py": "raise RuntimeError('broken module')\n",
    }
    for rel, content in files.items():
        path = tmp_path / name / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    monkeypatch.syspath_prepend(str(tmp_path))
    importlib.invalidate_caches()
    yield name
    for module_name in [m for m in sys.modules if m.startswith(name)]:
        del sys.modules[module_name]
