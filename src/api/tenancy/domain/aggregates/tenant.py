"""Tenant aggregate for the tenancy context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tenancy.domain.value_objects import (
    PreparationStatus,
    TenantId,
    TenantStatus,
)


@dataclass(frozen=True)
class PreparationState:
    """Where a tenant's schema is in its provisioning lifecycle.

    Attributes:
        status: Current preparation status
        error: Operator-facing failure message, set only when failed
        started_at: When the latest provisioning attempt began
        completed_at: When the latest attempt reached ready or failed
    """

    status: PreparationStatus = PreparationStatus.PENDING
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class Tenant:
    """Tenant aggregate: one school and the schema holding its data.

    Business rules:
    - ``schema_name`` is unique across tenants and never changes once assigned
    - Requests are only routed to tenants that are active and ready
    - ``subscription`` belongs to billing and is carried opaquely
    """

    id: TenantId
    name: str
    schema_name: str
    status: TenantStatus = TenantStatus.ACTIVE
    preparation: PreparationState = field(default_factory=PreparationState)
    domain: str | None = None
    subscription: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        name: str,
        schema_name: str,
        domain: str | None = None,
        subscription: dict[str, Any] | None = None,
    ) -> "Tenant":
        """Factory method for a new, not yet provisioned tenant.

        Args:
            name: Display name
            schema_name: Already validated, collision-checked schema name
            domain: Optional host name label used for subdomain hints
            subscription: Opaque billing metadata

        Returns:
            An active tenant with preparation pending
        """
        return cls(
            id=TenantId.generate(),
            name=name,
            schema_name=schema_name,
            domain=domain,
            subscription=dict(subscription or {}),
        )

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    @property
    def is_ready(self) -> bool:
        return self.preparation.status == PreparationStatus.READY
