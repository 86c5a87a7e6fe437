"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    APP_NAME: str
    APP_VERSION: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str
    MODULES_PACKAGE: str
    MODULE_PACKAGE_PREFIXES: tuple
    MODULES_DIR: str
    SESSION_TTL_HOURS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "development").lower()
        self.APP_NAME = os.getenv("APP_NAME", "Modular Backend")
        self.APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.MODULES_PACKAGE = os.getenv("MODULES_PACKAGE", "modular_backend.modules")
        # comma separated; defaults to the modules package itself
        raw_prefixes = os.getenv("MODULE_PACKAGE_PREFIXES", self.MODULES_PACKAGE)
        self.MODULE_PACKAGE_PREFIXES = tuple(p.strip() for p in raw_prefixes.split(",") if p.strip())
        self.MODULES_DIR = os.getenv("MODULES_DIR", "")
        self.SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "8"))
        self._validate()

    def _validate(self):
        if self.ENV not in ("dev", "development") and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if not self.MODULE_PACKAGE_PREFIXES:
            raise RuntimeError("MODULE_PACKAGE_PREFIXES must name at least one package prefix")
        if self.SESSION_TTL_HOURS <= 0:
            raise RuntimeError("SESSION_TTL_HOURS must be positive")

    @property
    def is_development(self) -> bool:
        return self.ENV in ("dev", "development")


settings = Settings()
