"""HTTP routes for tenant administration and tenant-scoped requests."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import text

from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import (
    PreparationTracker,
    SchemaProvisioner,
    TenantResolver,
    TenantService,
)
from tenancy.application.value_objects import Principal
from tenancy.dependencies import (
    get_current_principal,
    get_preparation_tracker,
    get_schema_provisioner,
    get_tenant_context,
    get_tenant_resolver,
    get_tenant_service,
    require_superuser,
)
from tenancy.domain.value_objects import TenantId
from tenancy.presentation.models import (
    CreateTenantRequest,
    PreparationStatusResponse,
    TenantContextResponse,
    TenantResponse,
    UpdateTenantStatusRequest,
)

router = APIRouter(
    prefix="/tenants",
    tags=["tenants"],
)

context_router = APIRouter(
    prefix="/tenant",
    tags=["tenant-context"],
)


def _parse_tenant_id(tenant_id: str) -> TenantId:
    try:
        return TenantId.from_string(tenant_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid tenant ID format",
        ) from e


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
)
def create_tenant(
    request: CreateTenantRequest,
    background_tasks: BackgroundTasks,
    principal: Annotated[Principal, Depends(require_superuser)],
    provisioner: Annotated[SchemaProvisioner, Depends(get_schema_provisioner)],
) -> TenantResponse:
    """Create a tenant and provision its schema.

    Provisioning runs after the response is sent unless ``wait`` is set;
    clients poll ``GET /tenants/{id}/preparation`` until it reports ready
    or failed. With ``wait`` the schema is ready when this returns, and a
    failing migration is reported by script name.

    Raises:
        HTTPException: 409 if the schema name or domain is already taken
        HTTPException: 422 if the schema name is invalid or reserved
        HTTPException: 500 if inline provisioning failed
    """
    tenant = provisioner.create_tenant(
        name=request.name,
        desired_schema_name=request.schema_name,
        domain=request.domain,
        subscription=request.subscription,
        actor_id=principal.user_id,
    )

    if request.wait:
        tenant = provisioner.provision_tenant_schema(
            tenant, actor_id=principal.user_id
        )
    else:
        background_tasks.add_task(
            provisioner.provision_in_background,
            tenant,
            principal.user_id,
        )

    return TenantResponse.from_domain(tenant)


@router.get("")
def list_tenants(
    _: Annotated[Principal, Depends(require_superuser)],
    service: Annotated[TenantService, Depends(get_tenant_service)],
    active_only: bool = False,
) -> list[TenantResponse]:
    """List tenants ordered by name."""
    tenants = service.list_tenants(active_only=active_only)
    return [TenantResponse.from_domain(tenant) for tenant in tenants]


@router.get("/{tenant_id}")
def get_tenant(
    tenant_id: str,
    _: Annotated[Principal, Depends(require_superuser)],
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> TenantResponse:
    """Get tenant by ID.

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
    """
    tenant = service.get_tenant(_parse_tenant_id(tenant_id))
    return TenantResponse.from_domain(tenant)


@router.patch("/{tenant_id}/status")
def update_tenant_status(
    tenant_id: str,
    request: UpdateTenantStatusRequest,
    principal: Annotated[Principal, Depends(require_superuser)],
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> TenantResponse:
    """Suspend, cancel, reactivate or schedule deletion of a tenant."""
    tenant = service.change_status(
        _parse_tenant_id(tenant_id),
        status=request.status,
        actor_id=principal.user_id,
    )
    return TenantResponse.from_domain(tenant)


@router.get("/{tenant_id}/preparation")
def get_preparation_status(
    tenant_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
    tracker: Annotated[PreparationTracker, Depends(get_preparation_tracker)],
) -> PreparationStatusResponse:
    """Provisioning status of a tenant.

    Available to superusers and to principals of the tenant itself. Other
    callers get 404, as if the tenant did not exist.
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)
    if not resolver.is_superuser(principal) and (
        principal.tenant_id is None
        or principal.tenant_id.upper() != tenant_id_obj.value
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found",
        )

    report = tracker.get_status(tenant_id_obj)
    return PreparationStatusResponse.from_report(report)


@router.post("/{tenant_id}/preparation/retry")
def retry_preparation(
    tenant_id: str,
    principal: Annotated[Principal, Depends(require_superuser)],
    provisioner: Annotated[SchemaProvisioner, Depends(get_schema_provisioner)],
) -> PreparationStatusResponse:
    """Provision a tenant again after a failed attempt.

    Raises:
        HTTPException: 404 if tenant not found
        HTTPException: 409 if the tenant is not failed
        HTTPException: 500 naming the failing script if it fails again
    """
    tenant = provisioner.retry_provisioning(
        _parse_tenant_id(tenant_id),
        actor_id=principal.user_id,
    )
    return PreparationStatusResponse.from_domain(tenant)


@context_router.get("/context")
def get_current_tenant_context(
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
) -> TenantContextResponse:
    """Report which tenant this request was routed to.

    Reads ``current_schema()`` through the scoped connection, so it shows
    the schema that unqualified queries in this request actually hit.
    """
    current_schema = tenant.connection.execute(
        text("SELECT current_schema()")
    ).scalar_one()
    return TenantContextResponse(
        tenant_id=tenant.tenant_id,
        source=tenant.source,
        current_schema=current_schema,
    )
