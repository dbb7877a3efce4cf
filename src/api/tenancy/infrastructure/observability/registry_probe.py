"""Domain probe for shared registry operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantRegistryProbe(Protocol):
    """Domain probe for tenant registry operations."""

    def tenant_registered(self, tenant_id: str, schema_name: str) -> None:
        """Record that a tenant row was inserted."""
        ...

    def tenant_retrieved(self, tenant_id: str) -> None:
        """Record that a tenant was retrieved."""
        ...

    def tenants_listed(self, count: int, active_only: bool) -> None:
        """Record that tenants were listed."""
        ...

    def schema_name_conflict(self, field: str, value: str) -> None:
        """Record that a tenant could not be registered because a value was taken."""
        ...

    def status_updated(
        self,
        tenant_id: str,
        status: str | None,
        preparation_status: str | None,
    ) -> None:
        """Record that a tenant's status changed."""
        ...

    def transition_rejected(
        self,
        tenant_id: str,
        current: str | None,
        target: str,
    ) -> None:
        """Record that a preparation transition was refused."""
        ...

    def with_context(self, context: ObservationContext) -> TenantRegistryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantRegistryProbe:
    """Default implementation of TenantRegistryProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantRegistryProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantRegistryProbe(logger=self._logger, context=context)

    def tenant_registered(self, tenant_id: str, schema_name: str) -> None:
        """Record that a tenant row was inserted."""
        self._logger.info(
            "tenant_registered",
            tenant_id=tenant_id,
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def tenant_retrieved(self, tenant_id: str) -> None:
        """Record that a tenant was retrieved."""
        self._logger.debug(
            "tenant_retrieved",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenants_listed(self, count: int, active_only: bool) -> None:
        """Record that tenants were listed."""
        self._logger.debug(
            "tenants_listed",
            count=count,
            active_only=active_only,
            **self._get_context_kwargs(),
        )

    def schema_name_conflict(self, field: str, value: str) -> None:
        self._logger.warning(
            "tenant_registration_conflict",
            field=field,
            value=value,
            **self._get_context_kwargs(),
        )

    def status_updated(
        self,
        tenant_id: str,
        status: str | None,
        preparation_status: str | None,
    ) -> None:
        """Record that a tenant's status changed."""
        self._logger.info(
            "tenant_status_updated",
            tenant_id=tenant_id,
            status=status,
            preparation_status=preparation_status,
            **self._get_context_kwargs(),
        )

    def transition_rejected(
        self,
        tenant_id: str,
        current: str | None,
        target: str,
    ) -> None:
        """Record that a preparation transition was refused."""
        self._logger.warning(
            "tenant_preparation_transition_rejected",
            tenant_id=tenant_id,
            current=current,
            target=target,
            **self._get_context_kwargs(),
        )
