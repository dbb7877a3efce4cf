"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SQL_ROOT = (
    Path(__file__).resolve().parent.parent
    / "tenancy"
    / "infrastructure"
    / "migrations"
    / "sql"
)


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        CAMPUS_DB_HOST: Database host (default: localhost)
        CAMPUS_DB_PORT: Database port (default: 5432)
        CAMPUS_DB_DATABASE: Database name (default: campus)
        CAMPUS_DB_USERNAME: Database user (default: campus)
        CAMPUS_DB_PASSWORD: Database password (required in production)
        CAMPUS_DB_POOL_MIN_CONNECTIONS: Connections kept open in the pool (default: 2)
        CAMPUS_DB_POOL_MAX_CONNECTIONS: Hard ceiling on open connections (default: 10)
        CAMPUS_DB_POOL_TIMEOUT_SECONDS: How long a checkout waits on a saturated
            pool before failing (default: 30)
        CAMPUS_DB_POOL_PRE_PING: Verify pooled connections before use (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPUS_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="campus", description="Database name")
    username: str = Field(default="campus", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Connections kept open in the pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )
    pool_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds a checkout blocks on a saturated pool",
        gt=0,
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Verify pooled connections before handing them out",
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class TenancySettings(BaseSettings):
    """Schema-per-tenant isolation settings.

    Environment variables:
        CAMPUS_TENANCY_SCHEMA_PREFIX: Prefix for derived tenant schema names
            (default: tenant_)
        CAMPUS_TENANCY_NEUTRAL_SEARCH_PATH: search_path restored on every
            connection before it goes back to the pool (default: public)
        CAMPUS_TENANCY_FALLBACK_SCHEMA: Namespace appended after the tenant
            schema for shared reference tables (default: public)
        CAMPUS_TENANCY_TENANT_HEADER: Header carrying an explicit tenant hint
            (default: X-Tenant-ID)
        CAMPUS_TENANCY_BASE_DOMAIN: Base domain for subdomain hints, e.g.
            campus.example.com (default: unset, host hints disabled)
        CAMPUS_TENANCY_SHARED_MIGRATIONS_DIR: Directory of shared schema scripts
        CAMPUS_TENANCY_TENANT_MIGRATIONS_DIR: Directory of tenant schema scripts
        CAMPUS_TENANCY_RUN_SHARED_MIGRATIONS_ON_STARTUP: (default: true)
        CAMPUS_TENANCY_MIGRATE_TENANTS_ON_STARTUP: Bring every ready tenant
            schema up to date at startup (default: false)
        CAMPUS_TENANCY_SUPERUSER_ROLES: Roles treated as platform superusers
            (default: ["superadmin"])
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPUS_TENANCY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    schema_prefix: str = Field(
        default="tenant_",
        description="Prefix for schema names derived from tenant names",
        pattern=r"^[a-z][a-z0-9_]*$",
        max_length=32,
    )
    neutral_search_path: str = Field(
        default="public",
        description="search_path of a connection that is not bound to a tenant",
    )
    fallback_schema: str = Field(
        default="public",
        description="Namespace searched after the tenant schema",
    )
    tenant_header: str = Field(
        default="X-Tenant-ID",
        description="Request header carrying an explicit tenant hint",
    )
    base_domain: str | None = Field(
        default=None,
        description="Base domain used to read a tenant hint from the Host header",
    )
    shared_migrations_dir: Path = Field(
        default=_SQL_ROOT / "shared",
        description="Directory of NNN_description.sql scripts for the shared schema",
    )
    tenant_migrations_dir: Path = Field(
        default=_SQL_ROOT / "tenant",
        description="Directory of NNN_description.sql scripts for tenant schemas",
    )
    run_shared_migrations_on_startup: bool = Field(
        default=True,
        description="Apply the shared migration set during application startup",
    )
    migrate_tenants_on_startup: bool = Field(
        default=False,
        description="Apply the tenant migration set to every ready tenant at startup",
    )
    superuser_roles: list[str] = Field(
        default_factory=lambda: ["superadmin"],
        description="Principal roles with no fixed home tenant",
    )

    @field_validator("base_domain")
    @classmethod
    def normalize_base_domain(cls, value: str | None) -> str | None:
        """Lowercase the base domain and drop any leading dot."""
        if value is None:
            return None
        value = value.strip().lower().lstrip(".")
        return value or None


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Campus API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def tenancy(self) -> TenancySettings:
        """Get tenancy settings."""
        return get_tenancy_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_tenancy_settings() -> TenancySettings:
    """Get cached tenancy settings."""
    return TenancySettings()
