"""Tenant resolver: from request hints to a scoped connection.

Resolution precedence:

1. A principal below superuser with a tenant claim is always routed to
   that tenant. A header naming a different tenant is ignored and
   audited, so a spoofed header cannot escalate access.
2. A principal below superuser without a claim gets no tenant.
3. A superuser (no home tenant) or an anonymous caller is routed by the
   tenant header, else by the request subdomain.

The header may carry a tenant ID or a schema name. The claim is always a
tenant ID. The subdomain matches the tenant's ``domain`` label.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from structlog.contextvars import bound_contextvars

from shared_kernel.auditing import AuditAction, AuditEvent, AuditSink, NullAuditSink
from shared_kernel.identifiers import InvalidSchemaNameError, validate_schema_name
from shared_kernel.middleware.observability import (
    DefaultTenantContextProbe,
    TenantContextProbe,
)
from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.value_objects import (
    Principal,
    ResolvedTenant,
    TenantHint,
    TenantHints,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import (
    TenantContextMissingError,
    TenantInactiveError,
    TenantNotFoundError,
    TenantNotReadyError,
)
from tenancy.domain.value_objects import TenantId
from tenancy.ports.repositories import ITenantRegistry

if TYPE_CHECKING:
    from infrastructure.database.connection_pool import ConnectionPool
    from infrastructure.database.schema_scope import SchemaScope


class TenantResolver:
    """Resolves a request's tenant and scopes a pooled connection to it.

    The registry is read on every resolution, so a suspension takes effect
    on the tenant's next request.
    """

    def __init__(
        self,
        registry: ITenantRegistry,
        pool: ConnectionPool,
        scope: SchemaScope,
        superuser_roles: Collection[str] = ("superadmin",),
        probe: TenantContextProbe | None = None,
        audit: AuditSink | None = None,
    ):
        """Initialize the resolver.

        Args:
            registry: Shared tenant registry
            pool: Shared connection pool
            scope: Binds checked-out connections to the tenant schema
            superuser_roles: Roles allowed to choose a tenant by header
            probe: Optional domain probe for observability
            audit: Audit sink; events are discarded when omitted
        """
        self._registry = registry
        self._pool = pool
        self._scope = scope
        self._superuser_roles = frozenset(superuser_roles)
        self._probe = probe or DefaultTenantContextProbe()
        self._audit = audit or NullAuditSink()

    def is_superuser(self, principal: Principal | None) -> bool:
        return principal is not None and principal.role in self._superuser_roles

    def select_hint(
        self,
        principal: Principal | None,
        hints: TenantHints,
    ) -> TenantHint | None:
        """Pick the one hint that decides the tenant, or None."""
        if principal is not None and not self.is_superuser(principal):
            if principal.tenant_id is None:
                return None
            if (
                hints.header is not None
                and hints.header.upper() != principal.tenant_id.upper()
            ):
                self._probe.header_hint_ignored(
                    claimed_tenant_id=principal.tenant_id,
                    header_value=hints.header,
                    user_id=principal.user_id,
                )
                self._audit.record(
                    AuditEvent(
                        action=AuditAction.TENANT_HINT_OVERRIDDEN,
                        tenant_id=principal.tenant_id,
                        actor_id=principal.user_id,
                        details={"header_value": hints.header},
                    )
                )
            return TenantHint(source="claim", value=principal.tenant_id)

        if hints.header is not None:
            return TenantHint(source="header", value=hints.header)
        if hints.subdomain is not None:
            return TenantHint(source="subdomain", value=hints.subdomain)
        return None

    def resolve(
        self,
        principal: Principal | None,
        hints: TenantHints,
        required: bool = True,
    ) -> ResolvedTenant | None:
        """Resolve the request's tenant and check it may receive traffic.

        Returns:
            The tenant and the hint source it came from, or None when no
            hint was given and tenant context is optional

        Raises:
            TenantContextMissingError: No usable hint and ``required``
            TenantNotFoundError: The chosen hint matches no tenant
            TenantInactiveError: The tenant is not active
            TenantNotReadyError: The tenant's schema is not ready
        """
        user_id = principal.user_id if principal is not None else None
        hint = self.select_hint(principal, hints)
        if hint is None:
            if required:
                self._probe.tenant_context_missing(user_id=user_id)
                raise TenantContextMissingError("Tenant context is required")
            return None

        tenant = self._lookup(hint)
        if tenant is None:
            self._probe.tenant_not_found(
                source=hint.source,
                hint_value=hint.value,
                user_id=user_id,
            )
            raise TenantNotFoundError("Tenant not found")

        if not tenant.is_active:
            self._probe.tenant_inactive(
                tenant_id=tenant.id.value,
                status=tenant.status.value,
            )
            raise TenantInactiveError(tenant.id.value, tenant.status.value)

        if not tenant.is_ready:
            self._probe.tenant_not_ready(
                tenant_id=tenant.id.value,
                preparation_status=tenant.preparation.status.value,
            )
            raise TenantNotReadyError(
                tenant.id.value, tenant.preparation.status.value
            )

        if hint.source != "claim" and self.is_superuser(principal):
            self._audit.record(
                AuditEvent(
                    action=AuditAction.SUPERUSER_TENANT_ACCESS,
                    tenant_id=tenant.id.value,
                    actor_id=user_id,
                    details={"source": hint.source},
                )
            )

        self._probe.tenant_resolved(
            tenant_id=tenant.id.value,
            source=hint.source,
            user_id=user_id,
        )
        return ResolvedTenant(tenant=tenant, source=hint.source)

    @contextmanager
    def tenant_context(
        self,
        principal: Principal | None,
        hints: TenantHints,
        required: bool = True,
    ) -> Iterator[TenantContext | None]:
        """Resolve the tenant and hold a connection scoped to it.

        The connection is reset and returned to the pool when the block
        exits, however it exits. ``tenant_id`` is bound into the structlog
        context for the duration.

        Yields:
            The tenant context, or None when no hint was given and tenant
            context is optional
        """
        resolved = self.resolve(principal, hints, required=required)
        if resolved is None:
            yield None
            return

        tenant = resolved.tenant
        with (
            bound_contextvars(tenant_id=tenant.id.value),
            self._scope.scoped(self._pool, tenant.schema_name) as conn,
        ):
            try:
                yield TenantContext(
                    tenant_id=tenant.id.value,
                    schema_name=tenant.schema_name,
                    source=resolved.source,
                    connection=conn,
                )
            finally:
                self._probe.tenant_context_released(tenant_id=tenant.id.value)

    def _lookup(self, hint: TenantHint) -> Tenant | None:
        if hint.source == "subdomain":
            return self._registry.get_tenant_by_domain(hint.value)

        try:
            tenant_id = TenantId.from_string(hint.value)
        except ValueError:
            tenant_id = None
        if tenant_id is not None:
            return self._registry.get_tenant_by_id(tenant_id)

        if hint.source == "header":
            try:
                schema_name = validate_schema_name(hint.value)
            except InvalidSchemaNameError:
                return None
            return self._registry.get_tenant_by_schema_name(schema_name)
        return None
