"""Infrastructure services of the Base module.

- `UUIDService`: sequential GUIDs for new records;
- `DiagnosticsTracingService`: tracing over the standard `logging` module;
- `AppLogger`: convenience logger bound to one logger name;
- `SettingsService`: system, workspace and user settings and their
  effective (merged) values.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union
from uuid import UUID

from modular_backend.bootstrap import ScopedLifecycle, SingletonLifecycle, TransientLifecycle

from .guid_factory import SequentialGuidType, new_guid
from .models import SettingScope
from .repositories import SettingRepository

LevelLike = Union[int, str]


def _level(level: LevelLike) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown trace level: {level}")
    return value


class UUIDService(SingletonLifecycle):
    def __init__(self):
        self.kind = SequentialGuidType.SEQUENTIAL_AT_END

    def generate(self, kind: Optional[SequentialGuidType] = None) -> UUID:
        return new_guid(kind or self.kind)


class DiagnosticsTracingService(SingletonLifecycle):
    """Writes trace messages to the logger named after their source.

    `source` is either a class (its module and name form the logger name)
    or a plain context identifier.
    """

    root = "modular_backend.trace"

    def logger_for(self, source) -> logging.Logger:
        if isinstance(source, type):
            name = f"{source.__module__}.{source.__qualname__}"
        elif isinstance(source, str) and source.strip():
            name = source
        else:
            raise ValueError("trace source must be a class or a non-blank identifier")
        return logging.getLogger(f"{self.root}.{name}")

    def trace(self, source, level: LevelLike, message: str, *args) -> None:
        self.logger_for(source).log(_level(level), message, *args)


class AppLogger(TransientLifecycle):
    def __init__(self, name: str = "modular_backend.app"):
        self.logger = logging.getLogger(name)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str, exception: Optional[BaseException] = None) -> None:
        self.logger.error(message, exc_info=exception)

    def critical(self, message: str, exception: Optional[BaseException] = None) -> None:
        self.logger.critical(message, exc_info=exception)


class SettingsService(ScopedLifecycle):
    """Settings at three scopes; user overrides workspace overrides system."""

    def __init__(self, repository: SettingRepository):
        self.repository = repository

    @staticmethod
    def _scope_key(scope: SettingScope, scope_key) -> str:
        scope = SettingScope(scope)
        if scope is SettingScope.SYSTEM:
            return ""
        if scope_key is None or not str(scope_key).strip():
            raise ValueError(f"{scope.value} settings require a scope key")
        return str(scope_key)

    def get_values(self, scope: SettingScope, scope_key=None) -> Dict[str, str]:
        scope = SettingScope(scope)
        return self.repository.values(scope, self._scope_key(scope, scope_key))

    def set_value(self, scope: SettingScope, key: str, value: str, scope_key=None):
        if not key or not key.strip():
            raise ValueError("setting key cannot be blank")
        scope = SettingScope(scope)
        return self.repository.upsert(scope, self._scope_key(scope, scope_key), key.strip(), value)

    def remove_value(self, scope: SettingScope, key: str, scope_key=None) -> bool:
        if not key or not key.strip():
            raise ValueError("setting key cannot be blank")
        scope = SettingScope(scope)
        return self.repository.delete(scope, self._scope_key(scope, scope_key), key.strip())

    def effective(self, tenant_id=None, user_id=None) -> Dict[str, str]:
        """Merge system, workspace and user settings (later scopes win)."""
        merged = self.repository.values(SettingScope.SYSTEM)
        if tenant_id:
            merged.update(self.repository.values(SettingScope.WORKSPACE, str(tenant_id)))
        if user_id:
            merged.update(self.repository.values(SettingScope.USER, str(user_id)))
        return merged
