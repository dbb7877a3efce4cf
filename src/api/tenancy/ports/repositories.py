"""Repository protocols (ports) for the tenancy bounded context.

The shared registry is the single source of truth mapping a tenant to its
schema and lifecycle state. Implementations read through to the database
on every call; there is no caching layer here.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import PreparationStatus, TenantId, TenantStatus


@runtime_checkable
class ITenantRegistry(Protocol):
    """Registry of tenants and their schemas."""

    def create_tenant(
        self,
        name: str,
        desired_schema_name: str | None = None,
        domain: str | None = None,
        subscription: dict[str, Any] | None = None,
    ) -> Tenant:
        """Register a new tenant with preparation pending.

        Args:
            name: Display name
            desired_schema_name: Explicit schema name; derived from ``name``
                when omitted
            domain: Optional host name label for subdomain hints
            subscription: Opaque billing metadata

        Returns:
            The stored tenant

        Raises:
            ConflictError: If the schema name is already taken
            InvalidSchemaNameError: If the schema name is not acceptable
        """
        ...

    def get_tenant_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Retrieve a tenant by ID, or None."""
        ...

    def get_tenant_by_schema_name(self, schema_name: str) -> Tenant | None:
        """Retrieve a tenant by schema name, or None."""
        ...

    def get_tenant_by_domain(self, domain: str) -> Tenant | None:
        """Retrieve a tenant by its domain label, or None."""
        ...

    def list_tenants(self, active_only: bool = False) -> list[Tenant]:
        """List tenants ordered by name.

        Args:
            active_only: Only include tenants whose status is active
        """
        ...

    def update_status(
        self,
        tenant_id: TenantId,
        status: TenantStatus | None = None,
        preparation_status: PreparationStatus | None = None,
        error: str | None = None,
    ) -> Tenant:
        """Change a tenant's status and/or preparation status atomically.

        The change is a single UPDATE. A preparation status change only
        applies when the current value is a legal source state, so two
        concurrent transitions cannot both succeed.

        Returns:
            The tenant as stored after the update

        Raises:
            TenantNotFoundError: If no tenant has this ID
            InvalidPreparationTransitionError: If the preparation change is
                not allowed from the current state
        """
        ...
