"""Application services of the Sys module: languages, sessions and the
application context served to clients at start-up."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from modular_backend.bootstrap import ScopedLifecycle
from modular_backend.config import Settings
from modular_backend.modules.base.mapping import ObjectMapper
from modular_backend.modules.base.models import utcnow
from modular_backend.modules.base.services import SettingsService

from .models import UserSession
from .repositories import SessionRepository, SystemLanguageRepository
from .schemas import (
    ApplicationContextDto,
    BreadcrumbDto,
    LanguageDto,
    NavigationContextDto,
    NavigationItemDto,
    SessionContextDto,
    SessionDto,
    SessionOperationDto,
    SystemContextDto,
    UserContextDto,
    WorkspaceContextDto,
)
from .services import ContextService, EnvironmentService, PrincipalService

logger = logging.getLogger("modular_backend.sys")

MAX_TAKE = 100
SESSION_ID_ITEM = "session_id"


def _page(skip: int, take: int):
    if skip < 0:
        raise ValueError("skip cannot be negative")
    if take < 1:
        raise ValueError("take must be at least 1")
    return skip, min(take, MAX_TAKE)


class LanguageService(ScopedLifecycle):
    def __init__(self, repository: SystemLanguageRepository, mapper: ObjectMapper):
        self.repository = repository
        self.mapper = mapper

    def get_languages(self, active_only: bool = True) -> List[LanguageDto]:
        return self.mapper.map_all(self.repository.get_all(active_only), LanguageDto)

    def get_language(self, code: str) -> LanguageDto:
        if code is None or not code.strip():
            raise ValueError("language code cannot be blank")
        language = self.repository.get_by_code(code)
        if language is None:
            raise LookupError(f"language '{code}' not found")
        return self.mapper.map(language, LanguageDto)

    def get_default(self) -> LanguageDto:
        return self.mapper.map(self.repository.get_default(), LanguageDto)


class SessionService(ScopedLifecycle):
    """User sessions; listing is paged and never returns more than 100 rows."""

    def __init__(self, repository: SessionRepository, mapper: ObjectMapper, settings: Settings):
        self.repository = repository
        self.mapper = mapper
        self.settings = settings

    def get_sessions(self, skip: int = 0, take: int = 50, active_only: bool = False) -> List[SessionDto]:
        skip, take = _page(skip, take)
        return self.mapper.map_all(self.repository.get_sessions(skip, take, active_only), SessionDto)

    def get_session(self, session_id: UUID) -> Optional[SessionDto]:
        user_session = self.repository.get_by_id(session_id)
        if user_session is None:
            return None
        return self.mapper.map(user_session, SessionDto)

    def get_operations(self, session_id: UUID, skip: int = 0, take: int = 50) -> List[SessionOperationDto]:
        skip, take = _page(skip, take)
        return self.mapper.map_all(self.repository.get_operations(session_id, skip, take), SessionOperationDto)

    def exists(self, session_id: UUID) -> bool:
        return self.repository.exists(session_id)

    def start_session(
        self,
        user_id: Optional[str] = None,
        tenant_id: Optional[UUID] = None,
        ip_address: str = "",
        user_agent: str = "",
    ) -> SessionDto:
        now = utcnow()
        user_session = UserSession(
            user_id=user_id,
            tenant_fk=tenant_id,
            started_at=now,
            last_activity_at=now,
            expires_at=now + timedelta(hours=self.settings.SESSION_TTL_HOURS),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        user_session = self.repository.create(user_session)
        logger.info("session_started id=%s user=%s", user_session.id, user_id or "anonymous")
        return self.mapper.map(user_session, SessionDto)

    def end_session(self, session_id: UUID) -> Optional[SessionDto]:
        user_session = self.repository.end(session_id)
        if user_session is None:
            return None
        return self.mapper.map(user_session, SessionDto)

    def track(self, session_id: UUID, method: str, path: str, status_code: int, duration_ms: float) -> bool:
        """Record a request against a known session; unknown ids are ignored."""
        if not self.repository.exists(session_id):
            return False
        self.repository.record_operation(session_id, method, path, status_code, duration_ms)
        self.repository.touch(session_id)
        return True


class ApplicationContextService(ScopedLifecycle):
    """Everything a client needs to render its shell in one response."""

    def __init__(
        self,
        settings: Settings,
        environment: EnvironmentService,
        principal: PrincipalService,
        sessions: SessionService,
        settings_service: SettingsService,
        context: ContextService,
    ):
        self.settings = settings
        self.environment = environment
        self.principal = principal
        self.sessions = sessions
        self.settings_service = settings_service
        self.context = context

    def _system(self) -> SystemContextDto:
        return SystemContextDto(
            name=self.settings.APP_NAME,
            version=self.settings.APP_VERSION,
            environment=self.environment.environment_name,
            features={
                "enableMultiTenant": True,
                "enableAdvancedSettings": self.environment.is_feature_enabled("AdvancedSettings"),
            },
        )

    def _user(self) -> Optional[UserContextDto]:
        user_id = self.principal.get_user_id()
        if not self.principal.is_authenticated or user_id is None:
            return None
        return UserContextDto(
            id=user_id,
            name=self.principal.user_name,
            email=self.principal.get_user_email(),
            roles=self.principal.get_roles(),
        )

    def _session(self) -> SessionContextDto:
        session_id = self.context.get_value(SESSION_ID_ITEM)
        session = self.sessions.get_session(session_id) if session_id is not None else None
        if session is None:
            return SessionContextDto(is_authenticated=self.principal.is_authenticated)
        return SessionContextDto(
            id=session.id,
            is_authenticated=self.principal.is_authenticated,
            expires_at=session.expires_at,
            last_activity_at=session.last_activity_at,
        )

    @staticmethod
    def _navigation(current_route: Optional[str]) -> NavigationContextDto:
        route = current_route or "/"
        return NavigationContextDto(
            current_route=route,
            breadcrumbs=[BreadcrumbDto(label="Home", route="/", is_current=route == "/")],
            primary_menu=[
                NavigationItemDto(id="dashboard", label="Dashboard", route="/dashboard", icon="home", is_active=route == "/dashboard"),
                NavigationItemDto(id="settings", label="Settings", route="/settings", icon="settings", is_active=route == "/settings"),
            ],
        )

    def get_application_context(self, current_route: Optional[str] = None) -> ApplicationContextDto:
        tenant_id = self.principal.tenant_id
        user = self._user()
        return ApplicationContextDto(
            system=self._system(),
            workspace=WorkspaceContextDto(id=tenant_id),
            user=user,
            session=self._session(),
            navigation=self._navigation(current_route),
            settings=self.settings_service.effective(tenant_id, user.id if user else None),
            generated_at=datetime.now(timezone.utc),
        )
