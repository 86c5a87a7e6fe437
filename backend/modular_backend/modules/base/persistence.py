"""Pre-commit processing of entities.

Before every flush the `PreCommitService` passes the session through all
registered `PreCommitStrategy` services. Strategies fill in the tracking
attributes of entities deriving from the bases in `models`: timestamps,
the auditing principal and the owning tenant.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List

from sqlmodel import Session

from modular_backend.bootstrap import SingletonLifecycle, try_current_scope

from .claims import principal_id
from .models import AuditedEntity, TenantedAuditedEntity, TenantedReferenceDataEntity, TimestampedEntity, utcnow

logger = logging.getLogger("modular_backend.persistence")


def _pending(session: Session) -> Iterable[object]:
    for obj in session.new:
        yield obj, True
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            yield obj, False


class PreCommitStrategy(ABC):
    """A step applied to new and modified entities before they are flushed."""

    @abstractmethod
    def process(self, session: Session) -> None:
        raise NotImplementedError


class TimestampPreCommitStrategy(PreCommitStrategy, SingletonLifecycle):
    def process(self, session: Session) -> None:
        now = utcnow()
        for obj, is_new in _pending(session):
            if not isinstance(obj, TimestampedEntity):
                continue
            if is_new and obj.created_on_utc is None:
                obj.created_on_utc = now
            obj.last_modified_on_utc = now


class AuditingPreCommitStrategy(PreCommitStrategy, SingletonLifecycle):
    """Records the principal of the current request on audited entities."""

    def process(self, session: Session) -> None:
        scope = try_current_scope()
        principal = principal_id(scope.claims) if scope is not None else None
        if principal is None:
            return
        for obj, is_new in _pending(session):
            if not isinstance(obj, AuditedEntity):
                continue
            if is_new and not obj.created_by:
                obj.created_by = principal
            obj.last_modified_by = principal


class TenantPreCommitStrategy(PreCommitStrategy, SingletonLifecycle):
    """Assigns the current tenant to new tenanted entities lacking one."""

    def process(self, session: Session) -> None:
        scope = try_current_scope()
        if scope is None or scope.tenant_id is None:
            return
        for obj in session.new:
            if isinstance(obj, (TenantedAuditedEntity, TenantedReferenceDataEntity)) and obj.tenant_fk is None:
                obj.tenant_fk = scope.tenant_id


class PreCommitService(SingletonLifecycle):
    """Runs every registered `PreCommitStrategy` on a session about to flush."""

    def __init__(self, strategies: List[PreCommitStrategy]):
        self.strategies = list(strategies)

    def pre_process(self, session: Session) -> None:
        for strategy in self.strategies:
            strategy.process(session)

    def flush_hook(self):
        """Return a `before_flush` listener bound to this service."""
        def before_flush(session, _flush_context, _instances):
            self.pre_process(session)
        return before_flush
