"""The bag of everything collected while initialising module packages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from fastapi import APIRouter
from sqlalchemy import MetaData

from .contracts import ModuleInitialiser, ServiceConfigurer, ServiceDescriptor


@dataclass
class InitialiserBag:
    """Services, mappers, schemas and configurers discovered across modules."""
    module_name: str = ""
    modules: List[str] = field(default_factory=list)
    initialisers: List[ModuleInitialiser] = field(default_factory=list)
    local_services: List[ServiceDescriptor] = field(default_factory=list)
    # reserved for services hosted by another process; nothing fills it yet
    remote_service_placeholders: List[ServiceDescriptor] = field(default_factory=list)
    service_configurers: List[ServiceConfigurer] = field(default_factory=list)
    mapper_profiles: List[Tuple[type, str]] = field(default_factory=list)
    db_schemas: List[Callable[[MetaData], None]] = field(default_factory=list)
    routers: List[APIRouter] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def entity_configurations(self) -> List[type]:
        return [getattr(action, "configuration") for action in self.db_schemas if hasattr(action, "configuration")]

    def counts(self) -> dict:
        return {
            "modules": len(self.modules),
            "services": len(self.local_services),
            "mappers": len(self.mapper_profiles),
            "schemas": len(self.db_schemas),
            "configurers": len(self.service_configurers),
            "routers": len(self.routers),
            "initialisers": len(self.initialisers),
        }
