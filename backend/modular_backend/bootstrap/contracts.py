"""Contracts that modules implement to take part in the bootstrap.

Modules never register themselves explicitly. Instead the bootstrap scans
every module package and picks up classes deriving from the types below:

- lifecycle markers (`SingletonLifecycle`, `ScopedLifecycle`,
  `TransientLifecycle`) turn a class into a registered service;
- `ModuleInitialiser` subclasses are invoked before and after the service
  provider is built;
- `ServiceConfigurer` subclasses run once the provider exists, for services
  needing credentials or other resolved collaborators;
- `MapperProfile` subclasses describe entity to DTO mappings;
- `EntityConfiguration` subclasses configure a SQLModel table (indexes,
  seed rows) and are only picked up from persistence modules.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, List, Optional, Type

from pydantic import BaseModel
from sqlalchemy import Table


class ServiceRegistrationError(Exception):
    """Raised when services cannot be registered or wired together."""


class ScopeError(RuntimeError):
    """Raised when request-scoped state is used outside of a request scope."""


class Lifecycle(str, enum.Enum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


class HasLifecycle:
    """Marker base hinting at the default lifetime of the implementor."""
    lifecycle: ClassVar[Lifecycle]


class SingletonLifecycle(HasLifecycle):
    """One instance for the lifetime of the application."""
    lifecycle = Lifecycle.SINGLETON


class ScopedLifecycle(HasLifecycle):
    """One instance per request scope."""
    lifecycle = Lifecycle.SCOPED


class TransientLifecycle(HasLifecycle):
    """A new instance every time the service is requested."""
    lifecycle = Lifecycle.TRANSIENT


LIFECYCLE_MARKERS = (HasLifecycle, SingletonLifecycle, ScopedLifecycle, TransientLifecycle)


@dataclass(frozen=True)
class ServiceDescriptor:
    """A contract -> implementation registration with its lifetime."""
    contract: type
    implementation: type
    lifecycle: Lifecycle

    def describe(self) -> str:
        if self.contract is self.implementation:
            return f"{self.implementation.__name__} ({self.lifecycle.value})"
        return f"{self.contract.__name__} -> {self.implementation.__name__} ({self.lifecycle.value})"


class ModuleInitialiser:
    """Per-module hooks around the build of the service provider.

    Subclasses must be constructible without arguments. Both hooks are
    optional; the defaults do nothing.
    """

    def do_before_build(self, registry, settings) -> None:
        """Phase 1: add registrations the reflection scan cannot infer."""

    def do_after_build(self, provider, settings) -> None:
        """Phase 2: configure services once they can be resolved."""


class ServiceConfigurer(ABC):
    """Configures a service after the provider has been built."""
    service_name: ClassVar[str] = ""

    @abstractmethod
    def configure_service(self, provider, configuration, log) -> None:
        raise NotImplementedError


class MapperProfile:
    """Maps instances of `source` onto the pydantic model `target`."""
    source: ClassVar[type]
    target: ClassVar[Type[BaseModel]]
    description: ClassVar[str] = ""

    def map(self, obj: Any) -> BaseModel:
        return self.target.model_validate(obj, from_attributes=True)


class EntityConfiguration:
    """Table level configuration for one SQLModel entity."""
    entity: ClassVar[type]

    def configure(self, table: Table) -> None:
        """Attach indexes or constraints to `table` before it is created."""

    def seed(self) -> Optional[List[Any]]:
        """Rows to insert when the table is empty."""
        return None
