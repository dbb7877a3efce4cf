"""Unit test fixtures.

Database-backed unit tests run against the in-memory SQLite stand-in from
``tests.unit.sqlite_harness``.
"""

from collections.abc import Iterator

import pytest

from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.settings import DatabaseSettings, TenancySettings
from tenancy.domain.value_objects import SchemaKind
from tenancy.infrastructure.migrations import DirectoryScriptSource, MigrationEngine
from tenancy.infrastructure.migrations.portable import StrippedScriptSource
from tenancy.infrastructure.tenant_registry import TenantRegistry
from tests.unit.sqlite_harness import (
    SearchPathRecordingScope,
    execute_statements,
    make_sqlite_engine,
)


@pytest.fixture
def db_settings() -> DatabaseSettings:
    """Provide test database settings."""
    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password="testpass",
        pool_min_connections=1,
        pool_max_connections=2,
        pool_timeout_seconds=0.2,
    )


@pytest.fixture
def tenancy_settings() -> TenancySettings:
    """Provide default tenancy settings."""
    return TenancySettings()


@pytest.fixture
def sqlite_engine():
    engine = make_sqlite_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_pool(db_settings, sqlite_engine) -> Iterator[ConnectionPool]:
    """An open ConnectionPool over the in-memory SQLite engine."""
    pool = ConnectionPool(db_settings, engine_factory=lambda _: sqlite_engine)
    pool.open()
    yield pool
    pool.close_all()


@pytest.fixture
def sqlite_scope() -> SearchPathRecordingScope:
    return SearchPathRecordingScope()


@pytest.fixture
def sqlite_migration_engine(sqlite_pool, sqlite_scope) -> MigrationEngine:
    return MigrationEngine(sqlite_pool, sqlite_scope, executor=execute_statements)


@pytest.fixture
def shared_scripts(tenancy_settings) -> StrippedScriptSource:
    """The shipped shared scripts with procedural blocks removed."""
    return StrippedScriptSource(
        DirectoryScriptSource(tenancy_settings.shared_migrations_dir, SchemaKind.SHARED)
    )


@pytest.fixture
def tenant_scripts(tenancy_settings) -> StrippedScriptSource:
    """The shipped tenant scripts with procedural blocks removed."""
    return StrippedScriptSource(
        DirectoryScriptSource(tenancy_settings.tenant_migrations_dir, SchemaKind.TENANT)
    )


@pytest.fixture
def migrated_pool(sqlite_pool, sqlite_migration_engine, shared_scripts):
    """SQLite pool whose shared schema has been migrated."""
    sqlite_migration_engine.apply_migrations("shared", shared_scripts)
    return sqlite_pool


@pytest.fixture
def sqlite_registry(migrated_pool) -> TenantRegistry:
    """TenantRegistry over a migrated in-memory database."""
    return TenantRegistry(migrated_pool)
