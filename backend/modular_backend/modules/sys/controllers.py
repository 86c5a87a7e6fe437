"""HTTP controllers of the Sys module (``api/rest/sys/v1``).

Controllers are thin: they resolve services from the provider, delegate to
them and translate `ValueError` into 400 and `LookupError` into 404.
"""

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from modular_backend.auth import require_principal
from modular_backend.dependencies import service
from modular_backend.modules.base.models import SettingScope
from modular_backend.modules.base.services import SettingsService

from .application import ApplicationContextService, LanguageService, SessionService
from .diagnostics import CodeQualityAnalysisService, StartupDiagnosticsService
from .routes import SysRoutesV1, relative
from .schemas import (
    AnalysisCapabilitiesDto,
    ApplicationContextDto,
    ClientDeviceDto,
    CodeAnalysisReportDto,
    LanguageDto,
    PermissionsDto,
    ServerDeviceDto,
    SessionDto,
    SessionOperationDto,
    SettingIn,
    SettingsDto,
    SmokeTestReportDto,
    StartupDiagnosticsDto,
)
from .services import ClientDeviceService, PrincipalService, ServerDeviceService

router = APIRouter(prefix=f"/{SysRoutesV1.VERSION_BASE}", tags=["sys"])


def _path(route: str) -> str:
    return relative(route)


# -- diagnostics -------------------------------------------------------------


@router.get(_path(SysRoutesV1.DIAGNOSTICS_STARTUP), response_model=StartupDiagnosticsDto)
def startup_diagnostics(
    tag: Optional[str] = None,
    diagnostics: StartupDiagnosticsService = service(StartupDiagnosticsService),
):
    return diagnostics.report(tag)


@router.get(_path(SysRoutesV1.DIAGNOSTICS_SMOKE_TESTS), response_model=SmokeTestReportDto)
def smoke_tests(diagnostics: StartupDiagnosticsService = service(StartupDiagnosticsService)):
    return diagnostics.run_smoke_tests()


@router.get(_path(SysRoutesV1.DIAGNOSTICS_CODE_QUALITY), response_model=CodeAnalysisReportDto)
def code_quality(analysis: CodeQualityAnalysisService = service(CodeQualityAnalysisService)):
    return analysis.get_cached_results() or analysis.analyze()


@router.get(_path(SysRoutesV1.DIAGNOSTICS_CODE_QUALITY) + "/capabilities", response_model=AnalysisCapabilitiesDto)
def code_quality_capabilities(analysis: CodeQualityAnalysisService = service(CodeQualityAnalysisService)):
    return analysis.get_capabilities()


@router.get(_path(SysRoutesV1.DIAGNOSTICS_SERVER), response_model=ServerDeviceDto)
def server_diagnostics(server: ServerDeviceService = service(ServerDeviceService)):
    return server.describe()


# -- health ------------------------------------------------------------------


@router.get(_path(SysRoutesV1.HEALTH_LIVE))
def health_live():
    return {"status": "alive"}


@router.get(_path(SysRoutesV1.HEALTH_READY))
def health_ready(diagnostics: StartupDiagnosticsService = service(StartupDiagnosticsService)):
    database = diagnostics.check_database()
    if not database.passed:
        return JSONResponse(status_code=503, content={"status": "not_ready", "detail": database.detail})
    return {"status": "ready"}


@router.get(_path(SysRoutesV1.HEALTH_STARTUP))
def health_startup(diagnostics: StartupDiagnosticsService = service(StartupDiagnosticsService)):
    if not diagnostics.is_started():
        return JSONResponse(status_code=503, content={"status": "starting"})
    summary = diagnostics.log.summary()
    return {"status": "started", "errors": summary.error_count, "duration_ms": summary.total_duration_ms}


# -- reference data ----------------------------------------------------------


@router.get(_path(SysRoutesV1.REFDATA_LANGUAGES), response_model=List[LanguageDto])
def list_languages(active_only: bool = True, languages: LanguageService = service(LanguageService)):
    return languages.get_languages(active_only)


@router.get(_path(SysRoutesV1.REFDATA_LANGUAGES) + "/default", response_model=LanguageDto)
def default_language(languages: LanguageService = service(LanguageService)):
    try:
        return languages.get_default()
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get(_path(SysRoutesV1.REFDATA_LANGUAGES) + "/{code}", response_model=LanguageDto)
def get_language(code: str, languages: LanguageService = service(LanguageService)):
    try:
        return languages.get_language(code)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# -- settings ----------------------------------------------------------------


@router.get(_path(SysRoutesV1.SETTINGS_EFFECTIVE), response_model=Dict[str, str])
def effective_settings(
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return settings_service.effective(principal.tenant_id, principal.get_user_id())


def _scope_key(scope: SettingScope, principal: PrincipalService) -> str:
    if scope is SettingScope.WORKSPACE:
        if principal.tenant_id is None:
            raise HTTPException(status_code=400, detail="no workspace selected")
        return str(principal.tenant_id)
    if scope is SettingScope.USER:
        user_id = principal.get_user_id()
        if user_id is None:
            raise HTTPException(status_code=401, detail="authentication required")
        return user_id
    return ""


def _get_settings(scope: SettingScope, principal: PrincipalService, settings_service: SettingsService) -> SettingsDto:
    scope_key = _scope_key(scope, principal)
    return SettingsDto(scope=scope.value, scope_key=scope_key, values=settings_service.get_values(scope, scope_key))


def _put_setting(scope: SettingScope, body: SettingIn, principal: PrincipalService, settings_service: SettingsService) -> SettingsDto:
    scope_key = _scope_key(scope, principal)
    try:
        settings_service.set_value(scope, body.key, body.value, scope_key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return SettingsDto(scope=scope.value, scope_key=scope_key, values=settings_service.get_values(scope, scope_key))


@router.get(_path(SysRoutesV1.SETTINGS_SYSTEM), response_model=SettingsDto)
def system_settings(
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _get_settings(SettingScope.SYSTEM, principal, settings_service)


@router.put(_path(SysRoutesV1.SETTINGS_SYSTEM), response_model=SettingsDto, dependencies=[Depends(require_principal)])
def put_system_setting(
    body: SettingIn,
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _put_setting(SettingScope.SYSTEM, body, principal, settings_service)


@router.get(_path(SysRoutesV1.SETTINGS_WORKSPACE), response_model=SettingsDto)
def workspace_settings(
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _get_settings(SettingScope.WORKSPACE, principal, settings_service)


@router.put(_path(SysRoutesV1.SETTINGS_WORKSPACE), response_model=SettingsDto, dependencies=[Depends(require_principal)])
def put_workspace_setting(
    body: SettingIn,
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _put_setting(SettingScope.WORKSPACE, body, principal, settings_service)


@router.get(_path(SysRoutesV1.SETTINGS_USER), response_model=SettingsDto, dependencies=[Depends(require_principal)])
def user_settings(
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _get_settings(SettingScope.USER, principal, settings_service)


@router.put(_path(SysRoutesV1.SETTINGS_USER), response_model=SettingsDto, dependencies=[Depends(require_principal)])
def put_user_setting(
    body: SettingIn,
    principal: PrincipalService = service(PrincipalService),
    settings_service: SettingsService = service(SettingsService),
):
    return _put_setting(SettingScope.USER, body, principal, settings_service)


# -- sessions ----------------------------------------------------------------


@router.get(_path(SysRoutesV1.SESSIONS), response_model=List[SessionDto])
def list_sessions(
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    active_only: bool = False,
    sessions: SessionService = service(SessionService),
):
    return sessions.get_sessions(skip, take, active_only)


@router.post(_path(SysRoutesV1.SESSIONS), response_model=SessionDto, status_code=201)
def start_session(
    principal: PrincipalService = service(PrincipalService),
    device: ClientDeviceService = service(ClientDeviceService),
    sessions: SessionService = service(SessionService),
):
    return sessions.start_session(
        user_id=principal.get_user_id(),
        tenant_id=principal.tenant_id,
        ip_address=device.ip_address,
        user_agent=device.user_agent,
    )


@router.get(_path(SysRoutesV1.SESSIONS) + "/{session_id}", response_model=SessionDto)
def get_session(session_id: UUID, sessions: SessionService = service(SessionService)):
    found = sessions.get_session(session_id)
    if found is None:
        raise HTTPException(status_code=404, detail="session not found")
    return found


@router.get(_path(SysRoutesV1.SESSIONS) + "/{session_id}/operations", response_model=List[SessionOperationDto])
def get_session_operations(
    session_id: UUID,
    skip: int = Query(0, ge=0),
    take: int = Query(50, ge=1),
    sessions: SessionService = service(SessionService),
):
    if not sessions.exists(session_id):
        raise HTTPException(status_code=404, detail="session not found")
    return sessions.get_operations(session_id, skip, take)


@router.delete(_path(SysRoutesV1.SESSIONS) + "/{session_id}", response_model=SessionDto)
def end_session(session_id: UUID, sessions: SessionService = service(SessionService)):
    ended = sessions.end_session(session_id)
    if ended is None:
        raise HTTPException(status_code=404, detail="session not found")
    return ended


# -- context, permissions and device -------------------------------------------


@router.get(_path(SysRoutesV1.CONTEXT), response_model=ApplicationContextDto)
def application_context(
    route: Optional[str] = None,
    context: ApplicationContextService = service(ApplicationContextService),
):
    return context.get_application_context(route)


@router.get(_path(SysRoutesV1.PERMISSIONS), response_model=PermissionsDto, dependencies=[Depends(require_principal)])
def permissions(principal: PrincipalService = service(PrincipalService)):
    return PermissionsDto(
        is_authenticated=principal.is_authenticated,
        user_id=principal.get_user_id(),
        roles=principal.get_roles(),
    )


@router.get(_path(SysRoutesV1.DEVICE), response_model=ClientDeviceDto)
def client_device(device: ClientDeviceService = service(ClientDeviceService)):
    return device.describe()
