"""Repositories of the Sys module."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select

from modular_backend.bootstrap import ScopedLifecycle
from modular_backend.modules.base.models import utcnow
from modular_backend.modules.base.repositories import RepositoryBase

from .models import SessionOperation, SystemLanguage, UserSession


class SystemLanguageRepository(RepositoryBase, ScopedLifecycle):
    """Read access to the `SystemLanguage` reference data."""

    def get_all(self, active_only: bool = True) -> List[SystemLanguage]:
        """Languages ordered by sort order, then name."""
        stmt = select(SystemLanguage)
        if active_only:
            stmt = stmt.where(SystemLanguage.is_active == True)  # noqa: E712
        stmt = stmt.order_by(SystemLanguage.sort_order, SystemLanguage.name)
        return list(self.session.exec(stmt).all())

    def get_by_code(self, code: Optional[str]) -> Optional[SystemLanguage]:
        """Case-insensitive lookup; a blank code matches nothing."""
        if code is None or not code.strip():
            return None
        stmt = select(SystemLanguage).where(func.lower(SystemLanguage.code) == code.strip().lower())
        return self.session.exec(stmt).first()

    def get_default(self) -> SystemLanguage:
        stmt = (
            select(SystemLanguage)
            .where(SystemLanguage.is_default == True, SystemLanguage.is_active == True)  # noqa: E712
            .order_by(SystemLanguage.sort_order)
        )
        language = self.session.exec(stmt).first()
        if language is None:
            raise LookupError("no default system language is configured")
        return language

    def exists(self, code: Optional[str]) -> bool:
        return self.get_by_code(code) is not None


class SessionRepository(RepositoryBase, ScopedLifecycle):
    """User sessions and the operations recorded against them."""

    def create(self, user_session: UserSession) -> UserSession:
        return self.save(user_session)

    def get_sessions(self, skip: int = 0, take: int = 50, active_only: bool = False) -> List[UserSession]:
        stmt = select(UserSession)
        if active_only:
            stmt = stmt.where(UserSession.is_active == True)  # noqa: E712
        stmt = stmt.order_by(UserSession.last_activity_at.desc()).offset(skip).limit(take)
        return list(self.session.exec(stmt).all())

    def get_by_id(self, session_id: UUID) -> Optional[UserSession]:
        return self.session.get(UserSession, session_id)

    def exists(self, session_id: UUID) -> bool:
        stmt = select(UserSession.id).where(UserSession.id == session_id)
        return self.session.exec(stmt).first() is not None

    def get_operations(self, session_id: UUID, skip: int = 0, take: int = 50) -> List[SessionOperation]:
        stmt = (
            select(SessionOperation)
            .where(SessionOperation.session_fk == session_id)
            .order_by(SessionOperation.occurred_at.desc())
            .offset(skip)
            .limit(take)
        )
        return list(self.session.exec(stmt).all())

    def record_operation(self, session_id: UUID, method: str, path: str, status_code: int, duration_ms: float) -> SessionOperation:
        operation = SessionOperation(
            session_fk=session_id,
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        return self.save(operation)

    def touch(self, session_id: UUID, when: Optional[datetime] = None) -> Optional[UserSession]:
        """Update the last activity time of a session."""
        user_session = self.get_by_id(session_id)
        if user_session is None:
            return None
        user_session.last_activity_at = when or utcnow()
        return self.save(user_session)

    def end(self, session_id: UUID) -> Optional[UserSession]:
        user_session = self.get_by_id(session_id)
        if user_session is None:
            return None
        user_session.is_active = False
        return self.save(user_session)
