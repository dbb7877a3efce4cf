"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance. Use docker-compose
for testing. Every tenant created through ``tenant_factory`` has its schema,
registry row and migration log entries removed afterwards.
"""

from collections.abc import Generator
import os

import pytest
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.schema import DropSchema
from ulid import ULID

from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.settings import DatabaseSettings, TenancySettings
from shared_kernel.auditing import NullAuditSink
from tenancy.container import TenancyContainer, build_container


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        CAMPUS_DB_HOST, CAMPUS_DB_PORT, etc.
    """
    return DatabaseSettings(
        host=os.getenv("CAMPUS_DB_HOST", "localhost"),
        port=int(os.getenv("CAMPUS_DB_PORT", "5432")),
        database=os.getenv("CAMPUS_DB_DATABASE", "campus"),
        username=os.getenv("CAMPUS_DB_USERNAME", "campus"),
        password=SecretStr(os.getenv("CAMPUS_DB_PASSWORD", "campus_dev_password")),
        pool_min_connections=2,
        pool_max_connections=8,
        pool_timeout_seconds=5,
    )


@pytest.fixture(scope="session")
def pool(integration_db_settings) -> Generator[ConnectionPool, None, None]:
    """An open pool shared by the whole session."""
    pool = ConnectionPool(integration_db_settings)
    pool.open()
    yield pool
    pool.close_all()


@pytest.fixture(scope="session")
def container(pool) -> TenancyContainer:
    """Tenancy components wired to the session pool, shared schema migrated."""
    container = build_container(pool, TenancySettings(), audit=NullAuditSink())
    container.migrate_shared_schema()
    return container


@pytest.fixture
def cleanup_schemas(pool) -> Generator[list[str], None, None]:
    """Schema names to drop, with their registry and log rows, after the test."""
    schemas: list[str] = []
    yield schemas

    with pool.connection() as conn:
        for schema_name in schemas:
            conn.execute(DropSchema(schema_name, cascade=True, if_exists=True))
            conn.execute(
                text("DELETE FROM shared.tenants WHERE schema_name = :s"),
                {"s": schema_name},
            )
            conn.execute(
                text("DELETE FROM shared.schema_migrations WHERE schema_name = :s"),
                {"s": schema_name},
            )
        conn.commit()


@pytest.fixture
def unique_name():
    """Tenant display names that never collide across runs."""

    def make(label: str = "School") -> str:
        return f"{label} {str(ULID())[-10:].lower()}"

    return make


@pytest.fixture
def tenant_factory(container, cleanup_schemas, unique_name):
    """Create and fully provision a tenant."""

    def make(label: str = "School", **kwargs):
        tenant = container.provisioner.create_tenant(unique_name(label), **kwargs)
        cleanup_schemas.append(tenant.schema_name)
        return container.provisioner.provision_tenant_schema(tenant)

    return make
