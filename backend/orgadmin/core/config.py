"""
config.py — Centralized Application Configuration Loader

Purpose:
- Define a single source of truth for application settings.
- Load and validate environment variables from `.env` or OS environment.
- Resolve which storage backend the process runs against (relational server,
  embedded SQLite file, or disabled) exactly once, at import time.

Backend Resolution:
1. USE_DATABASE=false      → "disabled" (every query returns an empty result)
2. DB_TYPE explicitly set  → that backend
3. DB_SERVER empty         → "sqlite" (embedded file database)
4. otherwise               → "mssql" (pooled relational server)

This module does NOT:
- Execute any DB connections (see app wiring in core/database.py).
- Modify runtime settings after start-up.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/orgadmin/core/config.py
# .env should be at: backend/.env
_CONFIG_DIR = Path(__file__).parent
_BACKEND_DIR = _CONFIG_DIR.parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    _ENV_FILE_PATH = str(_ENV_FILE.resolve())
else:
    # Fallback: pydantic looks in CWD
    _ENV_FILE_PATH = ".env"

BACKEND_MSSQL = "mssql"
BACKEND_SQLITE = "sqlite"
BACKEND_DISABLED = "disabled"


class Settings(BaseSettings):
    """
    Settings container for the organization structure backend.
    """

    APP_NAME: str = Field(
        "Organization Structure Admin",
        description="Title reported by the API and the health endpoint",
    )
    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    # Backend selection
    USE_DATABASE: bool = Field(
        True,
        description="Set False to skip all database work (demo/test affordance)",
    )
    DB_TYPE: Optional[str] = Field(
        None,
        description="'mssql' or 'sqlite'; defaults to sqlite when DB_SERVER is empty",
    )

    # Relational server (SQL Server)
    DB_SERVER: str = Field("", description="SQL Server host name")
    DB_PORT: int = Field(1433, description="SQL Server TCP port")
    DB_DATABASE: str = Field("OrgStructureDB", description="Target database name")
    DB_USER: str = Field("", description="SQL login")
    DB_PASSWORD: str = Field("", description="SQL login password")
    DB_POOL_MAX: int = Field(10, description="Maximum pooled connections")
    DB_POOL_MIN: int = Field(0, description="Connections kept open when idle")
    DB_IDLE_TIMEOUT_SECONDS: int = Field(
        30,
        description="Recycle pooled connections idle longer than this",
    )
    DB_POOL_TIMEOUT_SECONDS: int = Field(
        30,
        description="Seconds to wait for a free pooled connection",
    )

    # Embedded database
    SQLITE_PATH: str = Field(
        "database/organization.sqlite",
        description="SQLite file path (':memory:' for a throwaway database)",
    )

    # Auth
    JWT_SECRET_KEY: str = Field(
        "change-me-in-production",
        description="HS256 signing key for admin access tokens",
    )
    JWT_EXPIRE_MINUTES: int = Field(60, description="Admin access token lifetime")
    ADMIN_USERNAME: str = Field("admin", description="Administrator login name")
    ADMIN_PASSWORD_HASH: str = Field(
        "",
        description="pbkdf2_sha256 hash of the administrator password",
    )
    API_KEY_PREFIX: str = Field("org_", description="Prefix prepended to issued API keys")
    API_LOG_ENABLED: bool = Field(True, description="Record API-key requests in API_Logs")

    # Cache
    STATS_CACHE_TTL_SECONDS: int = Field(
        1800,
        description="How long organization statistics stay cached",
    )

    @field_validator("DB_TYPE", mode="before")
    @classmethod
    def normalize_db_type(cls, v: Any) -> Optional[str]:
        """Lower-case the backend name; empty strings count as unset."""
        if v is None:
            return None
        v = str(v).strip().lower()
        if not v:
            return None
        if v not in (BACKEND_MSSQL, BACKEND_SQLITE):
            raise ValueError(f"Unsupported DB_TYPE: {v}")
        return v

    @model_validator(mode="after")
    def resolve_db_type(self) -> "Settings":
        if self.DB_TYPE is None:
            self.DB_TYPE = BACKEND_SQLITE if not self.DB_SERVER.strip() else BACKEND_MSSQL
        return self

    @property
    def database_backend(self) -> str:
        """Backend name the executor will be built for."""
        if not self.USE_DATABASE:
            return BACKEND_DISABLED
        return self.DB_TYPE

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton: settings imported anywhere reference the same object.
settings = Settings()
