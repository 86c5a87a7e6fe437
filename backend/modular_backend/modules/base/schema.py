"""Schema helpers: applying discovered entity configurations and seeding."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from sqlalchemy import Index, MetaData, Table
from sqlmodel import Session, select

from modular_backend.bootstrap import EntityConfiguration, SingletonLifecycle

logger = logging.getLogger("modular_backend.schema")


def ensure_index(table: Table, name: str, *columns: str, unique: bool = False) -> None:
    """Attach an index to `table` unless one with that name already exists."""
    if any(index.name == name for index in table.indexes):
        return
    Index(name, *(table.c[column] for column in columns), unique=unique)


class ModelBuilderOrchestrator(SingletonLifecycle):
    """Applies every discovered entity configuration to the metadata.

    Configurations come from all modules; applying them is idempotent so
    several application builds may share the same metadata.
    """

    def __init__(self):
        self.applied: List[str] = []

    def apply(self, metadata: MetaData, schemas: Iterable[Callable[[MetaData], None]]) -> None:
        for action in schemas:
            action(metadata)
            configuration = getattr(action, "configuration", None)
            if configuration is not None:
                self.applied.append(configuration.__name__)
        logger.info("schema_configured %d configurations", len(self.applied))

    def seed(self, session: Session, configurations: Iterable[type]) -> int:
        """Insert seed rows into empty tables; returns the number inserted."""
        inserted = 0
        for cls in configurations:
            if not issubclass(cls, EntityConfiguration):
                continue
            rows = cls().seed()
            if not rows:
                continue
            if session.exec(select(cls.entity)).first() is not None:
                continue
            for row in rows:
                session.add(row)
            session.commit()
            inserted += len(rows)
            logger.info("seeded %s rows=%d", cls.entity.__name__, len(rows))
        return inserted
