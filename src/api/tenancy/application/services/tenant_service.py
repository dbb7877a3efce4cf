"""Tenant application service.

Handles tenant administration: reading tenants and changing their
lifecycle status. Creation goes through the schema provisioner because a
new tenant needs a schema.
"""

from __future__ import annotations

from shared_kernel.auditing import AuditAction, AuditEvent, AuditSink, NullAuditSink
from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import TenantNotFoundError
from tenancy.domain.value_objects import TenantId, TenantStatus
from tenancy.ports.repositories import ITenantRegistry


class TenantService:
    """Application service for tenant administration."""

    def __init__(
        self,
        registry: ITenantRegistry,
        audit: AuditSink | None = None,
        probe: TenantServiceProbe | None = None,
    ):
        """Initialize TenantService with dependencies.

        Args:
            registry: Shared tenant registry
            audit: Audit sink; events are discarded when omitted
            probe: Optional domain probe for observability
        """
        self._registry = registry
        self._audit = audit or NullAuditSink()
        self._probe = probe or DefaultTenantServiceProbe()

    def get_tenant(self, tenant_id: TenantId) -> Tenant:
        """Retrieve a tenant by ID.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        tenant = self._registry.get_tenant_by_id(tenant_id)
        if tenant is None:
            self._probe.tenant_not_found(tenant_id=tenant_id.value)
            raise TenantNotFoundError(f"Tenant {tenant_id.value} not found")

        self._probe.tenant_retrieved(tenant_id=tenant_id.value)
        return tenant

    def list_tenants(self, active_only: bool = False) -> list[Tenant]:
        tenants = self._registry.list_tenants(active_only=active_only)
        self._probe.tenants_listed(count=len(tenants))
        return tenants

    def change_status(
        self,
        tenant_id: TenantId,
        status: TenantStatus,
        actor_id: str | None = None,
    ) -> Tenant:
        """Change a tenant's lifecycle status.

        Suspending a tenant takes effect on its next request: the resolver
        reads the registry on every resolution.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        tenant = self._registry.update_status(tenant_id, status=status)
        self._probe.tenant_status_changed(
            tenant_id=tenant_id.value,
            status=status.value,
        )
        self._audit.record(
            AuditEvent(
                action=AuditAction.TENANT_STATUS_CHANGED,
                tenant_id=tenant_id.value,
                actor_id=actor_id,
                details={"status": status.value},
            )
        )
        return tenant
