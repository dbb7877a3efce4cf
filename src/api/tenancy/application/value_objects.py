"""Application-layer value objects for the tenancy bounded context.

These describe the request side of tenant resolution (who is calling and
which tenant hints they sent) and read-only views handed back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from shared_kernel.middleware.tenant_context import TenantHintSource
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import PreparationStatus


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as established by the authentication layer.

    Attributes:
        user_id: Stable user identifier
        role: Platform role name, e.g. ``admin`` or ``superadmin``
        tenant_id: The principal's own tenant claim; None for principals
            with no home tenant
    """

    user_id: str
    role: str
    tenant_id: str | None = None


@dataclass(frozen=True)
class TenantHints:
    """Client-supplied tenant hints extracted from a request.

    Attributes:
        header: Raw value of the tenant header (tenant ID or schema name)
        subdomain: Leftmost host label below the configured base domain
    """

    header: str | None = None
    subdomain: str | None = None

    @classmethod
    def from_request_values(
        cls,
        header: str | None,
        host: str | None,
        base_domain: str | None,
    ) -> TenantHints:
        """Build hints from a header value and a Host header.

        ``acme.campus.example.com`` yields the subdomain ``acme`` when the
        base domain is ``campus.example.com``. Hosts outside the base
        domain, the bare base domain, and ports are ignored.
        """
        header = header.strip() if header else None
        return cls(
            header=header or None,
            subdomain=subdomain_from_host(host, base_domain),
        )


def subdomain_from_host(host: str | None, base_domain: str | None) -> str | None:
    """Extract the single tenant label in front of ``base_domain``."""
    if not host or not base_domain:
        return None

    hostname = host.strip().lower().rsplit(":", 1)[0].rstrip(".")
    suffix = f".{base_domain}"
    if not hostname.endswith(suffix):
        return None

    label = hostname[: -len(suffix)]
    if not label or "." in label:
        return None
    return label


@dataclass(frozen=True)
class TenantHint:
    """The one hint chosen by the precedence rules."""

    source: TenantHintSource
    value: str


@dataclass(frozen=True)
class ResolvedTenant:
    """A tenant that passed status gating, and the hint that found it."""

    tenant: Tenant
    source: TenantHintSource


@dataclass(frozen=True)
class PreparationReport:
    """Provisioning status as exposed to onboarding clients.

    Attributes:
        tenant_id: The tenant
        status: pending, preparing, ready or failed
        error: Operator-safe failure message when failed
        started_at: When the latest attempt began
        completed_at: When the latest attempt finished
    """

    tenant_id: str
    status: PreparationStatus
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> PreparationReport:
        return cls(
            tenant_id=tenant.id.value,
            status=tenant.preparation.status,
            error=tenant.preparation.error,
            started_at=tenant.preparation.started_at,
            completed_at=tenant.preparation.completed_at,
        )
