"""Infrastructure services of the Sys module.

These wrap the hosting environment, the current request and the machine
the application runs on:

- `EnvironmentService`: environment name, paths, feature switches;
- `PrincipalService`: claims of the authenticated caller;
- `ClientDeviceService`: what can be told about the caller's device from
  the request headers;
- `ServerDeviceService`: host, platform and resource information;
- `ContextService`: per-request key/value store and service resolution.
"""

from __future__ import annotations

import os
import platform
import shutil
import socket
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from fastapi import Request

from modular_backend.bootstrap import ScopedLifecycle, ServiceProvider, SingletonLifecycle, current_scope, try_current_scope
from modular_backend.config import BASE, Settings
from modular_backend.modules.base.claims import EMAIL_CLAIMS, NAME, ROLE_CLAIMS, first_claim, principal_id

from .schemas import ClientDeviceDto, ServerDeviceDto, ServerHealthDto

UNKNOWN = "Unknown"


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} cannot be blank")
    return str(value)


class EnvironmentService(SingletonLifecycle):
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def environment_name(self) -> str:
        return self.settings.ENV

    @property
    def application_name(self) -> str:
        return self.settings.APP_NAME

    @property
    def is_development(self) -> bool:
        return self.settings.ENV in ("dev", "development")

    @property
    def is_staging(self) -> bool:
        return self.settings.ENV in ("stage", "staging")

    @property
    def is_production(self) -> bool:
        return self.settings.ENV in ("prod", "production")

    @property
    def content_root_path(self) -> str:
        return str(BASE)

    @property
    def web_root_path(self) -> str:
        return str(BASE / "static")

    def get_absolute_path(self, relative_path: str) -> str:
        _require(relative_path, "relative path")
        return str(Path(self.content_root_path) / relative_path)

    def is_environment(self, environment_name: str) -> bool:
        return _require(environment_name, "environment name").strip().lower() == self.environment_name

    def is_feature_enabled(self, feature_name: str) -> bool:
        """Features are on in development, otherwise set by ``FEATURE_<NAME>``."""
        _require(feature_name, "feature name")
        if self.is_development:
            return True
        value = os.getenv(f"FEATURE_{feature_name.strip().upper().replace('.', '_')}", "")
        return value.lower() in ("true", "1", "enabled")

    def should_expose_detailed_errors(self) -> bool:
        return self.is_development

    def should_enable_docs(self) -> bool:
        return self.is_development or self.is_staging

    def get_environment_variable(self, key: str) -> str:
        return os.getenv(_require(key, "key"), "")

    def get_environment_variable_or_default(self, key: str, default: str) -> str:
        return os.getenv(_require(key, "key")) or default


class PrincipalService(ScopedLifecycle):
    """The caller as described by the claims of its bearer token."""

    @property
    def claims(self) -> dict:
        scope = try_current_scope()
        return dict(scope.claims or {}) if scope is not None else {}

    @property
    def is_authenticated(self) -> bool:
        return bool(self.claims)

    @property
    def user_name(self) -> Optional[str]:
        return first_claim(self.claims, (NAME, "preferred_username"))

    @property
    def authentication_type(self) -> Optional[str]:
        return "Bearer" if self.is_authenticated else None

    @property
    def tenant_id(self):
        scope = try_current_scope()
        return scope.tenant_id if scope is not None else None

    def get_user_id(self) -> Optional[str]:
        return principal_id(self.claims)

    def get_user_email(self) -> Optional[str]:
        return first_claim(self.claims, EMAIL_CLAIMS)

    def get_claim_values(self, claim_type: str) -> List[str]:
        value = self.claims.get(_require(claim_type, "claim type"))
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    def get_claim_value(self, claim_type: str) -> Optional[str]:
        values = self.get_claim_values(claim_type)
        return values[0] if values else None

    def has_claim(self, claim_type: str, claim_value: Optional[str] = None) -> bool:
        values = self.get_claim_values(claim_type)
        if claim_value is None:
            return bool(values)
        return _require(claim_value, "claim value") in values

    def get_roles(self) -> List[str]:
        roles: List[str] = []
        for claim_type in ROLE_CLAIMS:
            for role in self.get_claim_values(claim_type):
                if role not in roles:
                    roles.append(role)
        return roles

    def is_in_role(self, role_name: str) -> bool:
        return _require(role_name, "role name") in self.get_roles()


class ClientDeviceService(ScopedLifecycle):
    """Client details derived from the headers of the current request."""

    def __init__(self, request: Request):
        self.request = request

    def _header(self, name: str) -> Optional[str]:
        if self.request is None:
            return None
        return self.request.headers.get(name) or None

    @property
    def user_agent(self) -> str:
        return self._header("User-Agent") or UNKNOWN

    @property
    def ip_address(self) -> str:
        forwarded = self._header("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = self._header("X-Real-IP")
        if real_ip:
            return real_ip
        if self.request is not None and self.request.client is not None:
            return self.request.client.host
        return UNKNOWN

    @property
    def accept_language(self) -> Optional[str]:
        return self._header("Accept-Language")

    @property
    def accept_encoding(self) -> Optional[str]:
        return self._header("Accept-Encoding")

    @property
    def is_mobile(self) -> bool:
        agent = self.user_agent.lower()
        return any(m in agent for m in ("mobile", "android", "iphone", "ipad", "ipod", "blackberry", "windows phone"))

    @property
    def is_tablet(self) -> bool:
        agent = self.user_agent.lower()
        return ("tablet" in agent or "ipad" in agent) and "mobile" not in agent

    @property
    def is_desktop(self) -> bool:
        return not self.is_mobile and not self.is_tablet

    @property
    def is_bot(self) -> bool:
        agent = self.user_agent.lower()
        return any(m in agent for m in ("bot", "crawler", "spider", "scraper"))

    def get_browser_name(self) -> str:
        agent = self.user_agent.lower()
        if "edg/" in agent:
            return "Edge"
        if "opr/" in agent or "opera/" in agent:
            return "Opera"
        if "chrome/" in agent:
            return "Chrome"
        if "firefox/" in agent:
            return "Firefox"
        if "safari/" in agent:
            return "Safari"
        if "msie" in agent or "trident/" in agent:
            return "Internet Explorer"
        return UNKNOWN

    def get_operating_system(self) -> str:
        agent = self.user_agent.lower()
        # checked in order: iPhone and iPad agents also mention "mac os x"
        checks = (
            ("windows nt 10.0", "Windows 10/11"),
            ("windows nt 6.3", "Windows 8.1"),
            ("windows nt 6.2", "Windows 8"),
            ("windows nt 6.1", "Windows 7"),
            ("windows", "Windows"),
            ("iphone", "iOS (iPhone)"),
            ("ipad", "iOS (iPad)"),
            ("mac os x", "macOS"),
            ("android", "Android"),
            ("linux", "Linux"),
        )
        for marker, name in checks:
            if marker in agent:
                return name
        return UNKNOWN

    def get_device_type(self) -> str:
        if self.is_bot:
            return "Bot"
        if self.is_tablet:
            return "Tablet"
        if self.is_mobile:
            return "Mobile"
        return "Desktop"

    def describe(self) -> ClientDeviceDto:
        return ClientDeviceDto(
            user_agent=self.user_agent,
            ip_address=self.ip_address,
            accept_language=self.accept_language,
            device_type=self.get_device_type(),
            browser=self.get_browser_name(),
            operating_system=self.get_operating_system(),
            is_mobile=self.is_mobile,
            is_tablet=self.is_tablet,
            is_desktop=self.is_desktop,
            is_bot=self.is_bot,
        )


class ServerDeviceService(SingletonLifecycle):
    """Information about the server process and the machine hosting it."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.host_name = socket.gethostname()
        self.process_id = os.getpid()
        self.process_start_time_utc = datetime.now(timezone.utc)
        self._started = time.monotonic()

    @property
    def fully_qualified_domain_name(self) -> Optional[str]:
        try:
            return socket.getfqdn(self.host_name)
        except OSError:
            return None

    @property
    def ip_addresses(self) -> List[str]:
        try:
            infos = socket.getaddrinfo(self.host_name, None)
        except OSError:
            return []
        return sorted({info[4][0] for info in infos})

    @property
    def platform(self) -> str:
        return {"Windows": "Windows", "Linux": "Linux", "Darwin": "macOS"}.get(platform.system(), UNKNOWN)

    @property
    def operating_system_version(self) -> str:
        return platform.release()

    @property
    def architecture(self) -> str:
        return platform.machine() or UNKNOWN

    @property
    def processor_count(self) -> int:
        return os.cpu_count() or 1

    @property
    def is_containerized(self) -> bool:
        if os.getenv("RUNNING_IN_CONTAINER") or os.getenv("KUBERNETES_SERVICE_HOST"):
            return True
        return os.path.exists("/.dockerenv")

    @property
    def runtime_version(self) -> str:
        return f"{platform.python_implementation()} {platform.python_version()}"

    @property
    def is_64bit_process(self) -> bool:
        return sys.maxsize > 2 ** 32

    @property
    def process_uptime_seconds(self) -> float:
        return round(time.monotonic() - self._started, 3)

    @staticmethod
    def _sysconf(name: str) -> int:
        try:
            return int(os.sysconf(name))
        except (AttributeError, ValueError, OSError):
            return 0

    @property
    def total_physical_memory_bytes(self) -> int:
        return self._sysconf("SC_PAGE_SIZE") * self._sysconf("SC_PHYS_PAGES")

    def get_available_physical_memory_bytes(self) -> int:
        return self._sysconf("SC_PAGE_SIZE") * self._sysconf("SC_AVPHYS_PAGES")

    def get_memory_usage_percent(self) -> float:
        total = self.total_physical_memory_bytes
        if total <= 0:
            return 0.0
        return round((total - self.get_available_physical_memory_bytes()) * 100.0 / total, 1)

    def get_disk_usage_percent(self) -> float:
        try:
            usage = shutil.disk_usage(BASE)
        except OSError:
            return 0.0
        if usage.total <= 0:
            return 0.0
        return round(usage.used * 100.0 / usage.total, 1)

    def get_health_status(self) -> ServerHealthDto:
        memory = self.get_memory_usage_percent()
        disk = self.get_disk_usage_percent()
        if memory > 90 or disk > 90:
            status, message = "Unhealthy", f"Critical: Memory at {memory:.1f}%, Disk at {disk:.1f}%"
        elif memory > 75 or disk > 75:
            status, message = "Degraded", f"Warning: Memory at {memory:.1f}%, Disk at {disk:.1f}%"
        else:
            status, message = "Healthy", "All resources within acceptable limits"
        return ServerHealthDto(
            status=status,
            memory_usage_percent=memory,
            disk_usage_percent=disk,
            message=message,
            checked_at_utc=datetime.now(timezone.utc),
        )

    def describe(self) -> ServerDeviceDto:
        return ServerDeviceDto(
            host_name=self.host_name,
            fully_qualified_domain_name=self.fully_qualified_domain_name,
            ip_addresses=self.ip_addresses,
            platform=self.platform,
            operating_system_version=self.operating_system_version,
            architecture=self.architecture,
            is_containerized=self.is_containerized,
            processor_count=self.processor_count,
            total_physical_memory_bytes=self.total_physical_memory_bytes,
            process_id=self.process_id,
            process_uptime_seconds=self.process_uptime_seconds,
            runtime_version=self.runtime_version,
            is_64bit_process=self.is_64bit_process,
            health=self.get_health_status(),
        )


class ContextService(ScopedLifecycle):
    """Values shared by everything handling the current request."""

    def __init__(self, provider: ServiceProvider):
        self.provider = provider

    def apply(self, key: str, value: Any) -> None:
        current_scope().items[_require(key, "key")] = value

    def get_value(self, key: str, default: Any = None) -> Any:
        return current_scope().items.get(_require(key, "key"), default)

    def get_service(self, contract: type):
        return self.provider.resolve(contract)
