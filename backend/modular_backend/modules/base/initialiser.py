"""Initialisation of the Base module: schema, seed data and the flush hook."""

import logging

from sqlmodel import Session, SQLModel

from modular_backend import database
from modular_backend.bootstrap import InitialiserBag, ModuleInitialiser

from .persistence import PreCommitService
from .schema import ModelBuilderOrchestrator

logger = logging.getLogger("modular_backend.base")


class BaseModuleInitialiser(ModuleInitialiser):
    def do_after_build(self, provider, settings) -> None:
        bag = provider.resolve(InitialiserBag)
        orchestrator = provider.resolve(ModelBuilderOrchestrator)
        orchestrator.apply(SQLModel.metadata, bag.db_schemas)
        database.create_db_and_tables()

        database.install_flush_hook(provider.resolve(PreCommitService).flush_hook())

        with Session(database.engine) as session:
            inserted = orchestrator.seed(session, bag.entity_configurations)
        logger.info("base_module_ready seeded=%d", inserted)
