"""Pydantic schemas returned and accepted by the Sys module's API."""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from modular_backend.bootstrap.startup_log import StartupDiagnosticsSummary, StartupLogEntry


class LanguageDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    native_name: str = ""
    is_default: bool = False
    sort_order: int = 0


class SessionDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[str] = None
    tenant_fk: Optional[UUID] = None
    started_at: datetime
    last_activity_at: datetime
    expires_at: datetime
    is_active: bool
    ip_address: str = ""
    user_agent: str = ""


class SessionOperationDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID = Field(validation_alias="session_fk")
    method: str
    path: str
    status_code: int
    duration_ms: float
    occurred_at: datetime


class SettingIn(BaseModel):
    key: str
    value: str = ""


class SettingsDto(BaseModel):
    scope: str
    scope_key: str = ""
    values: Dict[str, str] = {}


class PermissionsDto(BaseModel):
    is_authenticated: bool
    user_id: Optional[str] = None
    roles: List[str] = []


# -- context -------------------------------------------------------------


class SystemContextDto(BaseModel):
    name: str
    version: str
    environment: str
    features: Dict[str, bool] = {}


class WorkspaceContextDto(BaseModel):
    id: Optional[UUID] = None


class UserContextDto(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = []


class SessionContextDto(BaseModel):
    id: Optional[UUID] = None
    is_authenticated: bool = False
    expires_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


class BreadcrumbDto(BaseModel):
    label: str
    route: str
    is_current: bool = False


class NavigationItemDto(BaseModel):
    id: str
    label: str
    route: str
    icon: Optional[str] = None
    is_active: bool = False


class NavigationContextDto(BaseModel):
    current_route: Optional[str] = None
    breadcrumbs: List[BreadcrumbDto] = []
    primary_menu: List[NavigationItemDto] = []


class ApplicationContextDto(BaseModel):
    system: SystemContextDto
    workspace: WorkspaceContextDto
    user: Optional[UserContextDto] = None
    session: SessionContextDto
    navigation: NavigationContextDto
    settings: Dict[str, str] = {}
    generated_at: datetime


# -- devices -------------------------------------------------------------


class ClientDeviceDto(BaseModel):
    user_agent: str
    ip_address: str
    accept_language: Optional[str] = None
    device_type: Optional[str] = None
    browser: str
    operating_system: str
    is_mobile: bool
    is_tablet: bool
    is_desktop: bool
    is_bot: bool


class ServerHealthDto(BaseModel):
    status: str
    memory_usage_percent: float
    disk_usage_percent: float
    message: str
    checked_at_utc: datetime


class ServerDeviceDto(BaseModel):
    host_name: str
    fully_qualified_domain_name: Optional[str] = None
    ip_addresses: List[str] = []
    platform: str
    operating_system_version: str
    architecture: str
    is_containerized: bool
    processor_count: int
    total_physical_memory_bytes: int
    process_id: int
    process_uptime_seconds: float
    runtime_version: str
    is_64bit_process: bool
    health: ServerHealthDto


# -- diagnostics ---------------------------------------------------------


class CodeQualitySummaryDto(BaseModel):
    status: str = "Unknown"
    key_findings: List[str] = []
    recommendations: List[str] = []


class CodeAnalysisReportDto(BaseModel):
    analyzed_at: datetime
    duration_ms: float = 0.0
    modules_analyzed: int = 0
    total_issues: int = 0
    critical_issues: int = 0
    warning_issues: int = 0
    info_issues: int = 0
    health_score: int = 100
    summary: CodeQualitySummaryDto = CodeQualitySummaryDto()


class AnalysisRuleDto(BaseModel):
    id: str
    name: str
    description: str = ""
    category: str = "General"
    severity: str = "Info"


class AnalysisCapabilitiesDto(BaseModel):
    is_enabled: bool
    environment: str
    enabled_analyzers: List[str] = []
    rules: List[AnalysisRuleDto] = []


class SmokeTestResultDto(BaseModel):
    name: str
    passed: bool
    detail: str = ""


class SmokeTestReportDto(BaseModel):
    passed: bool
    results: List[SmokeTestResultDto] = []


class StartupDiagnosticsDto(BaseModel):
    summary: StartupDiagnosticsSummary
    modules: List[str] = []
    services: List[str] = []
    entries: List[StartupLogEntry] = []
