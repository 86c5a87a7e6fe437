"""Repositories of the Base module.

Repositories receive the database session of the current request and
commit/refresh on writes.
"""

from typing import Dict, List, Optional

from sqlmodel import Session, select

from modular_backend.bootstrap import ScopedLifecycle

from .models import ApplicationSetting, SettingScope


class RepositoryBase:
    """Common state of repositories: the request's database session."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, entity):
        """Persist `entity` and return the refreshed instance."""
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity


class SettingRepository(RepositoryBase, ScopedLifecycle):
    """Key/value settings stored per scope."""

    def list(self, scope: SettingScope, scope_key: str = "") -> List[ApplicationSetting]:
        stmt = (
            select(ApplicationSetting)
            .where(ApplicationSetting.scope == scope, ApplicationSetting.scope_key == scope_key)
            .order_by(ApplicationSetting.key)
        )
        return list(self.session.exec(stmt).all())

    def values(self, scope: SettingScope, scope_key: str = "") -> Dict[str, str]:
        return {s.key: s.value for s in self.list(scope, scope_key)}

    def get(self, scope: SettingScope, scope_key: str, key: str) -> Optional[ApplicationSetting]:
        stmt = select(ApplicationSetting).where(
            ApplicationSetting.scope == scope,
            ApplicationSetting.scope_key == scope_key,
            ApplicationSetting.key == key,
        )
        return self.session.exec(stmt).first()

    def upsert(self, scope: SettingScope, scope_key: str, key: str, value: str) -> ApplicationSetting:
        setting = self.get(scope, scope_key, key)
        if setting is None:
            setting = ApplicationSetting(scope=scope, scope_key=scope_key, key=key, value=value)
        else:
            setting.value = value
        return self.save(setting)

    def delete(self, scope: SettingScope, scope_key: str, key: str) -> bool:
        setting = self.get(scope, scope_key, key)
        if setting is None:
            return False
        self.session.delete(setting)
        self.session.commit()
        return True
