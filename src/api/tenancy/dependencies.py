"""FastAPI dependencies for the tenancy bounded context.

Services come from the ``TenancyContainer`` that the application lifespan
stores on ``app.state.tenancy``. The authenticated principal is placed on
``request.state.principal`` by the authentication layer, which is outside
this context.

Usage in FastAPI routes:
    @router.get("/example")
    def example(
        tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    ):
        # tenant.connection is scoped to the tenant's schema
        ...
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from structlog.contextvars import bind_contextvars, unbind_contextvars

from infrastructure.settings import TenancySettings, get_tenancy_settings
from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import (
    PreparationTracker,
    SchemaProvisioner,
    TenantResolver,
    TenantService,
)
from tenancy.application.value_objects import Principal, TenantHints
from tenancy.container import TenancyContainer


def get_tenancy_container(request: Request) -> TenancyContainer:
    """Get the container built at application startup.

    Raises:
        RuntimeError: If startup has not wired the tenancy context
    """
    container = getattr(request.app.state, "tenancy", None)
    if container is None:
        raise RuntimeError(
            "Tenancy context not initialized. Ensure application startup "
            "completed successfully."
        )
    return container


def get_tenant_resolver(
    container: Annotated[TenancyContainer, Depends(get_tenancy_container)],
) -> TenantResolver:
    return container.resolver


def get_tenant_service(
    container: Annotated[TenancyContainer, Depends(get_tenancy_container)],
) -> TenantService:
    return container.tenant_service


def get_schema_provisioner(
    container: Annotated[TenancyContainer, Depends(get_tenancy_container)],
) -> SchemaProvisioner:
    return container.provisioner


def get_preparation_tracker(
    container: Annotated[TenancyContainer, Depends(get_tenancy_container)],
) -> PreparationTracker:
    return container.tracker


def get_principal(request: Request) -> Principal | None:
    """The authenticated principal, or None for anonymous requests."""
    return getattr(request.state, "principal", None)


def get_current_principal(
    principal: Annotated[Principal | None, Depends(get_principal)],
) -> Principal:
    """The authenticated principal.

    Raises:
        HTTPException 401: If the request is anonymous
    """
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return principal


def require_superuser(
    principal: Annotated[Principal, Depends(get_current_principal)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
) -> Principal:
    """The authenticated principal, who must be a platform superuser.

    Raises:
        HTTPException 401: If the request is anonymous
        HTTPException 403: If the principal is not a superuser
    """
    if not resolver.is_superuser(principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform superuser role required",
        )
    return principal


def get_tenant_hints(
    request: Request,
    settings: Annotated[TenancySettings, Depends(get_tenancy_settings)],
) -> TenantHints:
    """Tenant hints carried by the request header and host."""
    return TenantHints.from_request_values(
        header=request.headers.get(settings.tenant_header),
        host=request.headers.get("host"),
        base_domain=settings.base_domain,
    )


def hold_tenant_context(
    principal: Annotated[Principal | None, Depends(get_principal)],
    hints: Annotated[TenantHints, Depends(get_tenant_hints)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
) -> Iterator[TenantContext]:
    """Resolve the request's tenant and hold a scoped connection for it.

    The connection is reset and released after the handler finishes,
    including when the handler raises. FastAPI runs this in its threadpool.

    Raises:
        TenantContextMissingError: If the request carries no usable hint
        TenantNotFoundError: If the hint matches no tenant
        TenantInactiveError: If the tenant is not active
        TenantNotReadyError: If the tenant's schema is not ready
    """
    with resolver.tenant_context(principal, hints, required=True) as context:
        yield context


def hold_optional_tenant_context(
    principal: Annotated[Principal | None, Depends(get_principal)],
    hints: Annotated[TenantHints, Depends(get_tenant_hints)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
) -> Iterator[TenantContext | None]:
    """Like ``hold_tenant_context``, but yields None when no hint was given."""
    with resolver.tenant_context(principal, hints, required=False) as context:
        yield context


async def get_tenant_context(
    context: Annotated[TenantContext, Depends(hold_tenant_context)],
) -> AsyncIterator[TenantContext]:
    """The request's tenant context, with ``tenant_id`` bound for logging.

    The binding is made in the request task, so events logged by the
    handler and by later dependencies carry the tenant.
    """
    bind_contextvars(tenant_id=context.tenant_id)
    try:
        yield context
    finally:
        unbind_contextvars("tenant_id")


async def get_optional_tenant_context(
    context: Annotated[TenantContext | None, Depends(hold_optional_tenant_context)],
) -> AsyncIterator[TenantContext | None]:
    """Like ``get_tenant_context``, but yields None when no hint was given."""
    if context is None:
        yield None
        return
    bind_contextvars(tenant_id=context.tenant_id)
    try:
        yield context
    finally:
        unbind_contextvars("tenant_id")
