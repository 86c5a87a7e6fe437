"""Entities of the Sys module: languages, user sessions and their operations."""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Table
from sqlmodel import Field

from modular_backend.bootstrap import EntityConfiguration
from modular_backend.modules.base.models import AuditedEntity, TenantedAuditedEntity, TimestampedEntity, utcnow
from modular_backend.modules.base.schema import ensure_index


class SystemLanguage(AuditedEntity, table=True):
    """A language the user interface can be displayed in."""
    __tablename__ = "sys_system_language"

    code: str
    name: str
    native_name: str = ""
    is_active: bool = True
    is_default: bool = False
    sort_order: int = 0


class UserSession(TenantedAuditedEntity, table=True):
    __tablename__ = "sys_user_session"

    user_id: Optional[str] = Field(default=None, index=True)
    started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    is_active: bool = True
    ip_address: str = ""
    user_agent: str = ""


class SessionOperation(TimestampedEntity, table=True):
    """One request made while a session was in use."""
    __tablename__ = "sys_session_operation"

    session_fk: uuid.UUID = Field(foreign_key="sys_user_session.id", index=True)
    method: str
    path: str
    status_code: int = 0
    duration_ms: float = 0.0
    occurred_at: datetime = Field(default_factory=utcnow)


class SystemLanguageConfiguration(EntityConfiguration):
    entity = SystemLanguage

    def configure(self, table: Table) -> None:
        ensure_index(table, "ux_sys_system_language_code", "code", unique=True)

    def seed(self) -> Optional[List[SystemLanguage]]:
        return [
            SystemLanguage(code="en", name="English", native_name="English", is_default=True, sort_order=0, created_by="system"),
            SystemLanguage(code="fr", name="French", native_name="Français", sort_order=1, created_by="system"),
            SystemLanguage(code="de", name="German", native_name="Deutsch", sort_order=2, created_by="system"),
            SystemLanguage(code="es", name="Spanish", native_name="Español", sort_order=3, created_by="system"),
        ]


class UserSessionConfiguration(EntityConfiguration):
    entity = UserSession

    def configure(self, table: Table) -> None:
        ensure_index(table, "ix_sys_user_session_active", "is_active", "last_activity_at")


class SessionOperationConfiguration(EntityConfiguration):
    entity = SessionOperation

    def configure(self, table: Table) -> None:
        ensure_index(table, "ix_sys_session_operation_occurred", "session_fk", "occurred_at")
