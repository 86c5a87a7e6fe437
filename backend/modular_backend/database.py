"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the modules and tests. Tables are created by the
Base module once every module's entity configurations have been applied.
"""

from typing import Callable, Optional

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from .config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=connect_args)

_flush_hook: Optional[Callable] = None


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments
    should rely on a proper migration tool (alembic) instead.
    """
    SQLModel.metadata.create_all(engine)


def install_flush_hook(hook: Callable) -> None:
    """Run `hook(session, flush_context, instances)` before every flush.

    Only one hook is installed at a time; installing a new one replaces
    the previous hook (each application build installs its own).
    """
    global _flush_hook
    if _flush_hook is not None and event.contains(Session, "before_flush", _flush_hook):
        event.remove(Session, "before_flush", _flush_hook)
    event.listen(Session, "before_flush", hook)
    _flush_hook = hook

