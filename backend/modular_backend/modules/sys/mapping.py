"""Mapper profiles of the Sys module."""

from datetime import datetime, timezone

from modular_backend.bootstrap import MapperProfile

from .models import SessionOperation, SystemLanguage, UserSession
from .schemas import LanguageDto, SessionDto, SessionOperationDto


def as_utc(value: datetime) -> datetime:
    """SQLite drops the timezone; stored times are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LanguageProfile(MapperProfile):
    source = SystemLanguage
    target = LanguageDto
    description = "SystemLanguage -> LanguageDto"


class SessionProfile(MapperProfile):
    """A session past its expiry time is reported as inactive."""
    source = UserSession
    target = SessionDto
    description = "UserSession -> SessionDto"

    def map(self, obj: UserSession) -> SessionDto:
        dto = SessionDto.model_validate(obj, from_attributes=True)
        expired = as_utc(obj.expires_at) <= datetime.now(timezone.utc)
        return dto.model_copy(update={"is_active": obj.is_active and not expired})


class SessionOperationProfile(MapperProfile):
    source = SessionOperation
    target = SessionOperationDto
    description = "SessionOperation -> SessionOperationDto"
