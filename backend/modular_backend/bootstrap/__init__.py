"""Module discovery, dependency injection and two-phase initialisation.

The public surface used by module packages is re-exported here; the
submodules contain the implementations and their documentation.
"""

from .bag import InitialiserBag
from .container import ServiceProvider, ServiceRegistry
from .contracts import (
    EntityConfiguration,
    Lifecycle,
    MapperProfile,
    ModuleInitialiser,
    ScopedLifecycle,
    ScopeError,
    ServiceConfigurer,
    ServiceDescriptor,
    ServiceRegistrationError,
    SingletonLifecycle,
    TransientLifecycle,
)
from .host import Host, build_host
from .scope import current_scope, request_scope, try_current_scope
from .startup_log import StartupDiagnosticsSummary, StartupLog

__all__ = [
    "EntityConfiguration",
    "Host",
    "InitialiserBag",
    "Lifecycle",
    "MapperProfile",
    "ModuleInitialiser",
    "ScopedLifecycle",
    "ScopeError",
    "ServiceConfigurer",
    "ServiceDescriptor",
    "ServiceProvider",
    "ServiceRegistrationError",
    "ServiceRegistry",
    "SingletonLifecycle",
    "StartupDiagnosticsSummary",
    "StartupLog",
    "TransientLifecycle",
    "build_host",
    "current_scope",
    "request_scope",
    "try_current_scope",
]
