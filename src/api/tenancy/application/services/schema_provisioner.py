"""Schema provisioner application service.

Creates a tenant's schema, migrates it to the current tenant script set
and seeds its baseline rows, moving the tenant through the preparation
state machine as it goes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.schema import CreateSchema

from shared_kernel.auditing import AuditAction, AuditEvent, AuditSink, NullAuditSink
from shared_kernel.identifiers import validate_schema_name
from tenancy.application.observability import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.application.services.preparation_tracker import PreparationTracker
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import MigrationFailureError, TenantNotFoundError
from tenancy.domain.value_objects import TenantId
from tenancy.ports.migrations import MigrationRunResult, SchemaMigrator, ScriptSource
from tenancy.ports.repositories import ITenantRegistry
from tenancy.ports.seeding import TenantSeeder

if TYPE_CHECKING:
    from infrastructure.database.connection_pool import ConnectionPool
    from infrastructure.database.schema_scope import SchemaScope


def failure_message(error: Exception) -> str:
    """Operator-safe summary of a provisioning failure.

    Migration failures name the failing script. Anything else is reduced
    to its exception type; raw database messages stay in the logs.
    """
    if isinstance(error, MigrationFailureError):
        return f"Migration {error.script_name} failed"
    return f"Provisioning failed: {type(error).__name__}"


class SchemaProvisioner:
    """Application service for creating and preparing tenant schemas.

    Provisioning is idempotent: the schema is created only if missing,
    already-applied scripts are skipped and seed rows are upserted, so a
    failed tenant can simply be provisioned again. Two attempts for the
    same tenant cannot overlap because each one first claims the tenant
    through the preparation tracker.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        scope: SchemaScope,
        registry: ITenantRegistry,
        migrator: SchemaMigrator,
        tenant_scripts: ScriptSource,
        tracker: PreparationTracker,
        seeder: TenantSeeder | None = None,
        audit: AuditSink | None = None,
        probe: ProvisioningProbe | None = None,
    ):
        """Initialize SchemaProvisioner with dependencies.

        Args:
            pool: Shared connection pool
            scope: Binds connections to the tenant schema for seeding
            registry: Shared tenant registry
            migrator: Applies the tenant script set to a schema
            tenant_scripts: Tenant migration scripts
            tracker: Preparation state machine
            seeder: Inserts baseline rows; no seeding when omitted
            audit: Audit sink; events are discarded when omitted
            probe: Optional domain probe for observability
        """
        self._pool = pool
        self._scope = scope
        self._registry = registry
        self._migrator = migrator
        self._tenant_scripts = tenant_scripts
        self._tracker = tracker
        self._seeder = seeder
        self._audit = audit or NullAuditSink()
        self._probe = probe or DefaultProvisioningProbe()

    def create_tenant(
        self,
        name: str,
        desired_schema_name: str | None = None,
        domain: str | None = None,
        subscription: dict[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> Tenant:
        """Register a tenant. Its schema is not created until provisioning.

        Raises:
            ConflictError: If the schema name or domain is already taken
            InvalidSchemaNameError: If the schema name is not acceptable
        """
        tenant = self._registry.create_tenant(
            name=name,
            desired_schema_name=desired_schema_name,
            domain=domain,
            subscription=subscription,
        )
        self._probe.tenant_created(
            tenant_id=tenant.id.value,
            schema_name=tenant.schema_name,
        )
        self._audit.record(
            AuditEvent(
                action=AuditAction.TENANT_CREATED,
                tenant_id=tenant.id.value,
                actor_id=actor_id,
                details={"name": tenant.name, "schema_name": tenant.schema_name},
            )
        )
        return tenant

    def provision_tenant_schema(
        self,
        tenant: Tenant,
        actor_id: str | None = None,
    ) -> Tenant:
        """Create, migrate and seed the tenant's schema.

        The tenant moves to ``preparing`` before any work starts and to
        ``ready`` once everything succeeded. On any failure it moves to
        ``failed`` with an operator-safe message, and the error is raised
        again for the caller.

        Returns:
            The tenant as stored after it became ready

        Raises:
            InvalidPreparationTransitionError: If the tenant is already
                being prepared or is ready
            MigrationFailureError: If a tenant script failed
        """
        self._tracker.start(tenant.id)
        self._probe.provisioning_started(
            tenant_id=tenant.id.value,
            schema_name=tenant.schema_name,
        )
        self._audit.record(
            AuditEvent(
                action=AuditAction.PROVISIONING_STARTED,
                tenant_id=tenant.id.value,
                actor_id=actor_id,
            )
        )

        try:
            self._create_schema(tenant)
            result = self._migrator.apply_migrations(
                tenant.schema_name, self._tenant_scripts
            )
            self._seed(tenant)
            ready = self._tracker.complete(tenant.id)
        except Exception as e:
            self._record_failure(tenant, e, actor_id)
            raise

        self._probe.provisioning_completed(
            tenant_id=tenant.id.value,
            schema_name=tenant.schema_name,
            applied_migrations=len(result.applied),
        )
        self._audit.record(
            AuditEvent(
                action=AuditAction.PROVISIONING_COMPLETED,
                tenant_id=tenant.id.value,
                actor_id=actor_id,
                details={"applied_migrations": list(result.applied)},
            )
        )
        return ready

    def retry_provisioning(
        self,
        tenant_id: TenantId,
        actor_id: str | None = None,
    ) -> Tenant:
        """Provision a tenant whose previous attempt failed.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            InvalidPreparationTransitionError: If the tenant is not failed
                (or pending)
        """
        tenant = self._registry.get_tenant_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant {tenant_id.value} not found")
        return self.provision_tenant_schema(tenant, actor_id=actor_id)

    def provision_in_background(
        self,
        tenant: Tenant,
        actor_id: str | None = None,
    ) -> None:
        """Provision outside a request, e.g. from a FastAPI background task.

        There is no caller to re-raise to here. The outcome is already
        recorded by the preparation tracker, where clients poll for it.
        """
        try:
            self.provision_tenant_schema(tenant, actor_id=actor_id)
        except Exception as e:
            self._probe.background_provisioning_failed(
                tenant_id=tenant.id.value,
                error=e,
            )

    def migrate_existing_tenants(self) -> list[MigrationRunResult]:
        """Bring every ready tenant schema up to the current script set.

        Tenants that are not ready are left to their own provisioning
        attempt. The first failure stops the sweep.

        Raises:
            MigrationFailureError: Naming the tenant schema and script that failed
        """
        results = [
            self._migrator.apply_migrations(tenant.schema_name, self._tenant_scripts)
            for tenant in self._registry.list_tenants()
            if tenant.is_ready
        ]
        self._probe.tenant_schemas_migrated(tenant_count=len(results))
        return results

    def _create_schema(self, tenant: Tenant) -> None:
        schema_name = validate_schema_name(tenant.schema_name)
        with self._pool.connection() as conn:
            conn.execute(CreateSchema(schema_name, if_not_exists=True))
            conn.commit()
        self._probe.schema_created(
            tenant_id=tenant.id.value,
            schema_name=schema_name,
        )

    def _seed(self, tenant: Tenant) -> None:
        if self._seeder is None:
            return
        with self._scope.scoped(self._pool, tenant.schema_name) as conn:
            self._seeder.seed(conn, tenant)
            conn.commit()
        self._probe.tenant_seeded(tenant_id=tenant.id.value)

    def _record_failure(
        self,
        tenant: Tenant,
        error: Exception,
        actor_id: str | None,
    ) -> None:
        self._probe.provisioning_failed(tenant_id=tenant.id.value, error=error)
        message = failure_message(error)
        try:
            self._tracker.fail(tenant.id, message)
        except Exception as fail_error:
            # The original error is what the caller needs to see
            self._probe.failure_not_recorded(
                tenant_id=tenant.id.value,
                error=fail_error,
            )
        self._audit.record(
            AuditEvent(
                action=AuditAction.PROVISIONING_FAILED,
                tenant_id=tenant.id.value,
                actor_id=actor_id,
                details={"error": message},
            )
        )
