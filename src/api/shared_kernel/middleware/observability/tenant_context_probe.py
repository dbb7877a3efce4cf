"""Domain probe for tenant context resolution.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to resolving a request's tenant and
scoping its connection.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantContextProbe(Protocol):
    """Domain probe for tenant context resolution operations."""

    def tenant_resolved(
        self,
        tenant_id: str,
        source: str,
        user_id: str | None,
    ) -> None:
        """Record that a request's tenant was resolved."""
        ...

    def tenant_context_missing(self, user_id: str | None) -> None:
        """Record that a request needing a tenant carried no usable hint."""
        ...

    def tenant_not_found(
        self,
        source: str,
        hint_value: str,
        user_id: str | None,
    ) -> None:
        """Record that a hint did not match any tenant."""
        ...

    def header_hint_ignored(
        self,
        claimed_tenant_id: str | None,
        header_value: str,
        user_id: str | None,
    ) -> None:
        """Record that a non-superuser's header hint was not honoured."""
        ...

    def tenant_inactive(self, tenant_id: str, status: str) -> None:
        """Record that a resolved tenant was not active."""
        ...

    def tenant_not_ready(self, tenant_id: str, preparation_status: str) -> None:
        """Record that a resolved tenant's schema is not provisioned yet."""
        ...

    def tenant_context_released(self, tenant_id: str) -> None:
        """Record that a request's scoped connection was reset and released."""
        ...

    def with_context(self, context: ObservationContext) -> TenantContextProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantContextProbe:
    """Default implementation of TenantContextProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTenantContextProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantContextProbe(logger=self._logger, context=context)

    def tenant_resolved(
        self,
        tenant_id: str,
        source: str,
        user_id: str | None,
    ) -> None:
        """Record that a request's tenant was resolved."""
        self._logger.debug(
            "tenant_context_resolved",
            tenant_id=tenant_id,
            source=source,
            user_id=user_id,
            **self._get_context_kwargs(),
        )

    def tenant_context_missing(self, user_id: str | None) -> None:
        """Record that a request needing a tenant carried no usable hint."""
        self._logger.warning(
            "tenant_context_missing",
            user_id=user_id,
            **self._get_context_kwargs(),
        )

    def tenant_not_found(
        self,
        source: str,
        hint_value: str,
        user_id: str | None,
    ) -> None:
        """Record that a hint did not match any tenant."""
        self._logger.warning(
            "tenant_context_not_found",
            source=source,
            hint_value=hint_value,
            user_id=user_id,
            **self._get_context_kwargs(),
        )

    def header_hint_ignored(
        self,
        claimed_tenant_id: str | None,
        header_value: str,
        user_id: str | None,
    ) -> None:
        """Record that a non-superuser's header hint was not honoured.

        A header naming a different tenant than the principal's own claim is
        a possible spoofing attempt, so this is logged at warning level.
        """
        self._logger.warning(
            "tenant_header_hint_ignored",
            claimed_tenant_id=claimed_tenant_id,
            header_value=header_value,
            user_id=user_id,
            **self._get_context_kwargs(),
        )

    def tenant_inactive(self, tenant_id: str, status: str) -> None:
        """Record that a resolved tenant was not active."""
        self._logger.warning(
            "tenant_context_inactive",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )

    def tenant_not_ready(self, tenant_id: str, preparation_status: str) -> None:
        """Record that a resolved tenant's schema is not provisioned yet."""
        self._logger.info(
            "tenant_context_not_ready",
            tenant_id=tenant_id,
            preparation_status=preparation_status,
            **self._get_context_kwargs(),
        )

    def tenant_context_released(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_context_released",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )
