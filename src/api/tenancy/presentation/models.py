"""Pydantic models for tenancy API requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tenancy.application.value_objects import PreparationReport
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import PreparationStatus, TenantStatus


class CreateTenantRequest(BaseModel):
    """Request model for creating a tenant."""

    name: str = Field(..., description="Tenant name", min_length=1, max_length=255)
    schema_name: str | None = Field(
        default=None,
        description="Explicit schema name; derived from the name when omitted",
        max_length=63,
    )
    domain: str | None = Field(
        default=None,
        description="Host label routed to this tenant, e.g. 'acme'",
        max_length=63,
    )
    subscription: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque billing metadata",
    )
    wait: bool = Field(
        default=False,
        description="Provision the schema before responding instead of in the background",
    )


class UpdateTenantStatusRequest(BaseModel):
    """Request model for changing a tenant's lifecycle status."""

    status: TenantStatus = Field(..., description="New lifecycle status")


class TenantResponse(BaseModel):
    """Response model for tenant."""

    id: str = Field(..., description="Tenant ID (ULID format)")
    name: str = Field(..., description="Tenant name")
    schema_name: str = Field(..., description="Tenant schema")
    domain: str | None = Field(default=None, description="Host label")
    status: TenantStatus = Field(..., description="Lifecycle status")
    preparation_status: PreparationStatus = Field(
        ..., description="Schema provisioning status"
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, tenant: Tenant) -> TenantResponse:
        """Convert domain Tenant aggregate to API response.

        Args:
            tenant: Tenant domain aggregate

        Returns:
            TenantResponse
        """
        return cls(
            id=tenant.id.value,
            name=tenant.name,
            schema_name=tenant.schema_name,
            domain=tenant.domain,
            status=tenant.status,
            preparation_status=tenant.preparation.status,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )


class PreparationStatusResponse(BaseModel):
    """Provisioning status polled by onboarding clients."""

    status: PreparationStatus = Field(
        ..., description="pending, preparing, ready or failed"
    )
    error: str | None = Field(default=None, description="Failure summary")
    started_at: datetime | None = Field(
        default=None, description="When the latest attempt began"
    )
    completed_at: datetime | None = Field(
        default=None, description="When the latest attempt finished"
    )

    @classmethod
    def from_report(cls, report: PreparationReport) -> PreparationStatusResponse:
        return cls(
            status=report.status,
            error=report.error,
            started_at=report.started_at,
            completed_at=report.completed_at,
        )

    @classmethod
    def from_domain(cls, tenant: Tenant) -> PreparationStatusResponse:
        return cls.from_report(PreparationReport.from_tenant(tenant))


class TenantContextResponse(BaseModel):
    """The tenant a request was routed to and the schema its connection uses."""

    tenant_id: str = Field(..., description="Resolved tenant ID")
    source: str = Field(..., description="claim, header or subdomain")
    current_schema: str = Field(
        ..., description="current_schema() of the scoped connection"
    )
