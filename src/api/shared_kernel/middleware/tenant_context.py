"""Tenant context value object for a resolved, scoped request.

This module contains the value object route handlers receive once a
request's tenant has been resolved. It is framework-agnostic and contains
no business logic, making it safe for the shared kernel.

The resolution logic itself (hint precedence, registry lookup, status
gating, connection scoping) lives in the tenancy bounded context.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

TenantHintSource = Literal["claim", "header", "subdomain"]


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant context for the current request.

    Handlers use ``connection`` for every tenant query and must not
    re-resolve the tenant or change the connection's search path.

    Attributes:
        tenant_id: The resolved tenant identifier (ULID string).
        schema_name: The tenant's schema. Never echo this to clients.
        source: Which hint the tenant was resolved from - 'claim' for the
            principal's own tenant, 'header' for an explicit request header,
            'subdomain' for the request host.
        connection: Pooled connection bound to ``schema_name`` for the
            lifetime of the request.
    """

    tenant_id: str
    schema_name: str
    source: TenantHintSource
    connection: Connection
