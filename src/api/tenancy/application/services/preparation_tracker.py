"""Preparation tracker application service.

Records where a tenant's schema is in its provisioning lifecycle so that
onboarding clients can poll an honest status instead of hitting errors
against a half-built schema.
"""

from __future__ import annotations

from tenancy.application.observability import (
    DefaultPreparationTrackerProbe,
    PreparationTrackerProbe,
)
from tenancy.application.value_objects import PreparationReport
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import TenantNotFoundError
from tenancy.domain.value_objects import PreparationStatus, TenantId
from tenancy.ports.repositories import ITenantRegistry


class PreparationTracker:
    """Drives the preparation state machine through the shared registry.

    Every transition is a single guarded UPDATE in the registry, so two
    concurrent ``start`` calls for the same tenant cannot both succeed:
    the loser gets ``InvalidPreparationTransitionError``.
    """

    def __init__(
        self,
        registry: ITenantRegistry,
        probe: PreparationTrackerProbe | None = None,
    ):
        self._registry = registry
        self._probe = probe or DefaultPreparationTrackerProbe()

    def start(self, tenant_id: TenantId) -> Tenant:
        """Claim the tenant for a provisioning attempt (pending/failed -> preparing).

        Raises:
            TenantNotFoundError: If the tenant does not exist
            InvalidPreparationTransitionError: If the tenant is already
                preparing or ready
        """
        return self._transition(tenant_id, PreparationStatus.PREPARING)

    def complete(self, tenant_id: TenantId) -> Tenant:
        """Mark the tenant ready (preparing -> ready)."""
        return self._transition(tenant_id, PreparationStatus.READY)

    def fail(self, tenant_id: TenantId, error: str) -> Tenant:
        """Mark the attempt failed (preparing -> failed), keeping ``error``.

        ``error`` is shown to operators and onboarding clients, so it must
        not contain raw database messages.
        """
        return self._transition(tenant_id, PreparationStatus.FAILED, error=error)

    def get_status(self, tenant_id: TenantId) -> PreparationReport:
        """Current preparation status of a tenant.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        tenant = self._registry.get_tenant_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant {tenant_id.value} not found")

        report = PreparationReport.from_tenant(tenant)
        self._probe.preparation_status_checked(
            tenant_id=tenant_id.value,
            status=report.status.value,
        )
        return report

    def _transition(
        self,
        tenant_id: TenantId,
        target: PreparationStatus,
        error: str | None = None,
    ) -> Tenant:
        tenant = self._registry.update_status(
            tenant_id,
            preparation_status=target,
            error=error,
        )
        self._probe.preparation_transitioned(
            tenant_id=tenant_id.value,
            status=target.value,
        )
        return tenant
