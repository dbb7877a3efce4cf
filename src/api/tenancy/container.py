"""Explicit construction of the tenancy service graph.

The connection pool is built and opened by the application lifespan and
passed in here; nothing in the tenancy context looks a pool up on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from infrastructure.database.models import SHARED_SCHEMA
from infrastructure.database.schema_scope import SchemaScope
from shared_kernel.auditing import AuditSink, StructlogAuditSink
from tenancy.application.services import (
    PreparationTracker,
    SchemaProvisioner,
    TenantResolver,
    TenantService,
)
from tenancy.domain.value_objects import SchemaKind
from tenancy.infrastructure.migrations import DirectoryScriptSource, MigrationEngine
from tenancy.infrastructure.seeding import BaselineSeeder
from tenancy.infrastructure.tenant_registry import TenantRegistry

if TYPE_CHECKING:
    from infrastructure.database.connection_pool import ConnectionPool
    from infrastructure.settings import TenancySettings
    from tenancy.ports.migrations import MigrationRunResult, ScriptSource


@dataclass
class TenancyContainer:
    """Every tenancy component, wired to one connection pool."""

    pool: ConnectionPool
    scope: SchemaScope
    registry: TenantRegistry
    migration_engine: MigrationEngine
    shared_scripts: ScriptSource
    tenant_scripts: ScriptSource
    tracker: PreparationTracker
    provisioner: SchemaProvisioner
    resolver: TenantResolver
    tenant_service: TenantService
    audit: AuditSink

    def migrate_shared_schema(self) -> MigrationRunResult:
        """Apply the shared script set to the ``shared`` schema."""
        return self.migration_engine.apply_migrations(
            SHARED_SCHEMA, self.shared_scripts
        )


def build_container(
    pool: ConnectionPool,
    settings: TenancySettings,
    audit: AuditSink | None = None,
) -> TenancyContainer:
    """Wire the tenancy components for ``pool``.

    Args:
        pool: An open connection pool
        settings: Tenancy settings
        audit: Audit sink; defaults to the structlog audit logger
    """
    audit = audit or StructlogAuditSink()
    scope = SchemaScope(
        neutral_search_path=settings.neutral_search_path,
        fallback_schema=settings.fallback_schema,
    )
    registry = TenantRegistry(pool, schema_prefix=settings.schema_prefix)
    migration_engine = MigrationEngine(pool, scope)
    shared_scripts = DirectoryScriptSource(
        settings.shared_migrations_dir, SchemaKind.SHARED
    )
    tenant_scripts = DirectoryScriptSource(
        settings.tenant_migrations_dir, SchemaKind.TENANT
    )
    tracker = PreparationTracker(registry)

    return TenancyContainer(
        pool=pool,
        scope=scope,
        registry=registry,
        migration_engine=migration_engine,
        shared_scripts=shared_scripts,
        tenant_scripts=tenant_scripts,
        tracker=tracker,
        provisioner=SchemaProvisioner(
            pool=pool,
            scope=scope,
            registry=registry,
            migrator=migration_engine,
            tenant_scripts=tenant_scripts,
            tracker=tracker,
            seeder=BaselineSeeder(),
            audit=audit,
        ),
        resolver=TenantResolver(
            registry=registry,
            pool=pool,
            scope=scope,
            superuser_roles=settings.superuser_roles,
            audit=audit,
        ),
        tenant_service=TenantService(registry, audit=audit),
        audit=audit,
    )
