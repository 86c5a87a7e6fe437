"""SQLModel entity bases and the Base module's own tables.

The bases form a single inheritance chain; each step adds one concern:

    GuidIdEntity            id (sequential GUID)
    TimestampedEntity       created_on_utc, last_modified_on_utc
    RecordStatedEntity      record_state
    AuditedEntity           created_by, last_modified_by
    ReferenceDataEntity     enabled, title, description, display hints

`TenantedAuditedEntity`, `TenantedReferenceDataEntity` and
`KeyedTenantedReferenceDataEntity` add the tenant foreign key (and a key)
on top. Timestamps, audit fields and tenant ids are filled in by the
pre-commit strategies in `persistence`.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Table
from sqlmodel import Field, SQLModel

from modular_backend.bootstrap import EntityConfiguration

from .guid_factory import new_guid
from .schema import ensure_index


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordPersistenceState(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class SettingScope(str, enum.Enum):
    SYSTEM = "system"
    WORKSPACE = "workspace"
    USER = "user"


class GuidIdEntity(SQLModel):
    id: uuid.UUID = Field(default_factory=new_guid, primary_key=True)


class TimestampedEntity(GuidIdEntity):
    created_on_utc: datetime = Field(default_factory=utcnow)
    last_modified_on_utc: datetime = Field(default_factory=utcnow)


class RecordStatedEntity(TimestampedEntity):
    record_state: RecordPersistenceState = Field(default=RecordPersistenceState.ACTIVE)


class AuditedEntity(RecordStatedEntity):
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None


class ReferenceDataEntity(AuditedEntity):
    enabled: bool = True
    title: str = ""
    description: str = ""
    display_order_hint: int = 0
    display_style_hint: str = ""


class TenantedAuditedEntity(AuditedEntity):
    tenant_fk: Optional[uuid.UUID] = Field(default=None, index=True)


class TenantedReferenceDataEntity(ReferenceDataEntity):
    tenant_fk: Optional[uuid.UUID] = Field(default=None, index=True)


class KeyedTenantedReferenceDataEntity(TenantedReferenceDataEntity):
    key: str = Field(default="", index=True)


class ApplicationSetting(AuditedEntity, table=True):
    """A key/value setting for the system, a workspace or a user.

    `scope_key` is empty for system settings, the tenant id for workspace
    settings and the user id for user settings.
    """
    __tablename__ = "base_application_setting"

    scope: SettingScope = Field(default=SettingScope.SYSTEM, index=True)
    scope_key: str = ""
    key: str
    value: str = ""


class IdentityProvider(RecordStatedEntity, table=True):
    """Link between a local user and an external identity provider."""
    __tablename__ = "base_identity_provider"

    key: str = ""
    provider_key: str = ""
    user_id: str = ""


class ApplicationSettingConfiguration(EntityConfiguration):
    entity = ApplicationSetting

    def configure(self, table: Table) -> None:
        ensure_index(table, "ux_base_application_setting_scope_key", "scope", "scope_key", "key", unique=True)

    def seed(self) -> Optional[List[ApplicationSetting]]:
        return [
            ApplicationSetting(scope=SettingScope.SYSTEM, key="theme", value="light", created_by="system"),
            ApplicationSetting(scope=SettingScope.SYSTEM, key="language", value="en", created_by="system"),
        ]


class IdentityProviderConfiguration(EntityConfiguration):
    entity = IdentityProvider

    def configure(self, table: Table) -> None:
        ensure_index(table, "ux_base_identity_provider_key", "key", "provider_key", unique=True)
