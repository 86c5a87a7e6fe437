"""Service registry and provider built on `dependency_injector`.

Registration happens in two steps. During phase 1 the registry only
collects `ServiceDescriptor`s and known instances. `build()` then wires one
provider per implementation class, autowiring constructor parameters from
their type annotations, and returns the `ServiceProvider` used by phase 2
and by the HTTP layer.

Constructor parameters are resolved as follows:

- a registered contract -> the provider of its latest implementation;
- ``list[Contract]`` -> every implementation registered for the contract;
- a registered instance type (settings, the bag, the startup log, the
  provider itself);
- the ORM ``Session`` -> the database session of the current request scope;
- the FastAPI ``Request`` -> the current request.

Parameters with a default value may stay unresolved; anything else is a
`ServiceRegistrationError`, as is a singleton that depends on a scoped
service or on request state, directly or through transient services.
"""

from __future__ import annotations

import functools
import inspect
import re
import typing
from typing import Any, Dict, List, Optional

from dependency_injector import containers, providers
from sqlalchemy.orm import Session as OrmSession
from starlette.requests import Request

from .contracts import Lifecycle, ServiceDescriptor, ServiceRegistrationError
from .scope import current_db_session, current_request, current_scope

_REQUEST_BOUND = (OrmSession, Request)


def _provider_name(cls: type) -> str:
    raw = f"{cls.__module__}.{cls.__qualname__}"
    return re.sub(r"\W", "_", raw).lower()


def _scoped_instance(implementation: type, factory: providers.Factory):
    scope = current_scope()
    if implementation not in scope.instances:
        scope.instances[implementation] = factory()
    return scope.instances[implementation]


class ServiceRegistry:
    """Collects service registrations before the provider is built."""

    def __init__(self):
        self._descriptors: Dict[type, List[ServiceDescriptor]] = {}
        self._instances: Dict[type, Any] = {}

    def add(self, descriptor: ServiceDescriptor) -> None:
        registered = self._descriptors.setdefault(descriptor.contract, [])
        if descriptor in registered:
            registered.remove(descriptor)
        registered.append(descriptor)

    def add_descriptors(self, descriptors) -> None:
        for descriptor in descriptors:
            self.add(descriptor)

    def add_singleton(self, contract: type, implementation: Optional[type] = None) -> None:
        self.add(ServiceDescriptor(contract, implementation or contract, Lifecycle.SINGLETON))

    def add_scoped(self, contract: type, implementation: Optional[type] = None) -> None:
        self.add(ServiceDescriptor(contract, implementation or contract, Lifecycle.SCOPED))

    def add_transient(self, contract: type, implementation: Optional[type] = None) -> None:
        self.add(ServiceDescriptor(contract, implementation or contract, Lifecycle.TRANSIENT))

    def add_instance(self, contract: type, instance: Any) -> None:
        self._instances[contract] = instance

    def descriptors(self, contract: type) -> List[ServiceDescriptor]:
        return list(self._descriptors.get(contract, []))

    def contracts(self) -> List[type]:
        return list(self._descriptors) + [c for c in self._instances if c not in self._descriptors]

    def is_registered(self, contract: type) -> bool:
        return contract in self._descriptors or contract in self._instances

    def build(self) -> "ServiceProvider":
        return ServiceProvider(self._descriptors, self._instances)


class ServiceProvider:
    """Resolves services registered in a `ServiceRegistry`."""

    def __init__(self, descriptors: Dict[type, List[ServiceDescriptor]], instances: Dict[type, Any]):
        self.container = containers.DynamicContainer()
        self._descriptors = {contract: list(items) for contract, items in descriptors.items()}
        self._instances = dict(instances)
        self._instances.setdefault(ServiceProvider, self)
        self._lifecycles: Dict[type, Lifecycle] = {}
        # declared lifecycle, or scoped for a transient depending on scoped state
        self._effective: Dict[type, Lifecycle] = {}
        self._providers: Dict[type, providers.Provider] = {}

        for contract, instance in self._instances.items():
            self.container.set_provider(_provider_name(contract), providers.Object(instance))
        for items in self._descriptors.values():
            for descriptor in items:
                self._lifecycles.setdefault(descriptor.implementation, descriptor.lifecycle)
        for items in self._descriptors.values():
            for descriptor in items:
                self._provider_for(descriptor.implementation, [])

    # -- wiring -------------------------------------------------------------

    def _provider_for(self, implementation: type, chain: List[type]) -> providers.Provider:
        if implementation in self._providers:
            return self._providers[implementation]
        if implementation in chain:
            cycle = " -> ".join(c.__name__ for c in chain + [implementation])
            raise ServiceRegistrationError(f"dependency cycle: {cycle}")
        lifecycle = self._lifecycles[implementation]
        request_bound: List[str] = []
        kwargs = self._constructor_kwargs(implementation, lifecycle, chain + [implementation], request_bound)
        if lifecycle is Lifecycle.TRANSIENT and request_bound:
            self._effective[implementation] = Lifecycle.SCOPED
        else:
            self._effective[implementation] = lifecycle

        if lifecycle is Lifecycle.SINGLETON:
            provider = providers.ThreadSafeSingleton(implementation, **kwargs)
        elif lifecycle is Lifecycle.TRANSIENT:
            provider = providers.Factory(implementation, **kwargs)
        else:
            factory = providers.Factory(implementation, **kwargs)
            provider = providers.Callable(functools.partial(_scoped_instance, implementation, factory))
        self._providers[implementation] = provider
        self.container.set_provider(_provider_name(implementation), provider)
        return provider

    def _constructor_kwargs(
        self, implementation: type, lifecycle: Lifecycle, chain: List[type], request_bound: List[str]
    ) -> Dict[str, Any]:
        if implementation.__init__ is object.__init__:
            return {}
        try:
            hints = typing.get_type_hints(implementation.__init__)
        except Exception as exc:
            raise ServiceRegistrationError(f"cannot read constructor annotations of {implementation.__name__}: {exc}") from exc

        kwargs = {}
        for name, param in inspect.signature(implementation).parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            dependency = self._dependency(hints.get(name), implementation, lifecycle, chain, request_bound)
            if dependency is None:
                if param.default is param.empty:
                    raise ServiceRegistrationError(
                        f"cannot resolve parameter '{name}' of {implementation.__name__}"
                    )
                continue
            kwargs[name] = dependency
        return kwargs

    def _check_captive(
        self, consumer: type, lifecycle: Lifecycle, dependency: type, effective: Lifecycle, request_bound: List[str]
    ) -> None:
        """Reject a singleton whose dependency is, directly or transitively, scoped."""
        if effective is not Lifecycle.SCOPED:
            return
        request_bound.append(dependency.__name__)
        if lifecycle is Lifecycle.SINGLETON:
            declared = self._lifecycles.get(dependency, Lifecycle.SCOPED)
            via = "" if declared is Lifecycle.SCOPED else f" ({declared.value}, built from scoped services)"
            raise ServiceRegistrationError(
                f"singleton {consumer.__name__} cannot depend on scoped {dependency.__name__}{via}"
            )

    def _wire(self, implementation: type, consumer: type, lifecycle: Lifecycle, chain: List[type], request_bound: List[str]):
        provider = self._provider_for(implementation, chain)
        self._check_captive(consumer, lifecycle, implementation, self._effective[implementation], request_bound)
        return provider

    def _dependency(
        self, hint, consumer: type, lifecycle: Lifecycle, chain: List[type], request_bound: List[str]
    ) -> Optional[providers.Provider]:
        if hint is None:
            return None
        origin = typing.get_origin(hint)
        if origin in (list, List):
            args = typing.get_args(hint)
            contract = args[0] if args else None
            if contract not in self._descriptors:
                return None
            items = [
                self._wire(descriptor.implementation, consumer, lifecycle, chain, request_bound)
                for descriptor in self._descriptors[contract]
            ]
            return providers.List(*items)
        if not inspect.isclass(hint):
            return None
        if hint in self._instances:
            return providers.Object(self._instances[hint])
        if hint in self._descriptors:
            implementation = self._descriptors[hint][-1].implementation
            return self._wire(implementation, consumer, lifecycle, chain, request_bound)
        if issubclass(hint, _REQUEST_BOUND):
            self._check_captive(consumer, lifecycle, hint, Lifecycle.SCOPED, request_bound)
            if issubclass(hint, OrmSession):
                return providers.Callable(current_db_session)
            return providers.Callable(current_request)
        return None

    # -- resolution ---------------------------------------------------------

    def is_registered(self, contract: type) -> bool:
        return contract in self._descriptors or contract in self._instances

    def resolve(self, contract: type):
        """Return the service registered last for `contract`."""
        if contract in self._instances:
            return self._instances[contract]
        items = self._descriptors.get(contract)
        if not items:
            raise LookupError(f"no service registered for {contract.__name__}")
        return self._providers[items[-1].implementation]()

    def try_resolve(self, contract: type):
        if not self.is_registered(contract):
            return None
        return self.resolve(contract)

    def resolve_all(self, contract: type) -> list:
        """Return one instance per implementation registered for `contract`."""
        return [self._providers[d.implementation]() for d in self._descriptors.get(contract, [])]

    def lifecycle_of(self, contract: type) -> Optional[Lifecycle]:
        items = self._descriptors.get(contract)
        if not items:
            return None
        return self._lifecycles[items[-1].implementation]
