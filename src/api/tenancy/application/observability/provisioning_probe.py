"""Domain probe for tenant schema provisioning.

Defines the interface for domain probes that capture provisioning
events: schema creation, migration, seeding and their failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ProvisioningProbe(Protocol):
    """Domain probe for the schema provisioner."""

    def tenant_created(self, tenant_id: str, schema_name: str) -> None:
        """Record that a tenant was registered for provisioning."""
        ...

    def provisioning_started(self, tenant_id: str, schema_name: str) -> None:
        """Record that a provisioning attempt claimed the tenant."""
        ...

    def schema_created(self, tenant_id: str, schema_name: str) -> None:
        """Record that the tenant schema exists."""
        ...

    def tenant_seeded(self, tenant_id: str) -> None:
        """Record that baseline rows were upserted."""
        ...

    def provisioning_completed(
        self,
        tenant_id: str,
        schema_name: str,
        applied_migrations: int,
    ) -> None:
        """Record that the tenant is ready."""
        ...

    def provisioning_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that a provisioning attempt failed."""
        ...

    def failure_not_recorded(self, tenant_id: str, error: Exception) -> None:
        """Record that marking the tenant as failed did not succeed."""
        ...

    def background_provisioning_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that provisioning outside a request failed."""
        ...

    def tenant_schemas_migrated(self, tenant_count: int) -> None:
        """Record that every ready tenant schema was brought up to date."""
        ...

    def with_context(self, context: ObservationContext) -> ProvisioningProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultProvisioningProbe:
    """Default implementation of ProvisioningProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultProvisioningProbe:
        """Create a new probe with observation context bound."""
        return DefaultProvisioningProbe(logger=self._logger, context=context)

    def tenant_created(self, tenant_id: str, schema_name: str) -> None:
        self._logger.info(
            "tenant_created",
            tenant_id=tenant_id,
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def provisioning_started(self, tenant_id: str, schema_name: str) -> None:
        self._logger.info(
            "tenant_provisioning_started",
            tenant_id=tenant_id,
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def schema_created(self, tenant_id: str, schema_name: str) -> None:
        self._logger.debug(
            "tenant_schema_created",
            tenant_id=tenant_id,
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def tenant_seeded(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_seeded",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def provisioning_completed(
        self,
        tenant_id: str,
        schema_name: str,
        applied_migrations: int,
    ) -> None:
        self._logger.info(
            "tenant_provisioning_completed",
            tenant_id=tenant_id,
            schema_name=schema_name,
            applied_migrations=applied_migrations,
            **self._get_context_kwargs(),
        )

    def provisioning_failed(self, tenant_id: str, error: Exception) -> None:
        self._logger.error(
            "tenant_provisioning_failed",
            tenant_id=tenant_id,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def failure_not_recorded(self, tenant_id: str, error: Exception) -> None:
        """Record that marking the tenant as failed did not succeed.

        The tenant stays in ``preparing`` until an operator marks it failed.
        """
        self._logger.critical(
            "tenant_provisioning_failure_not_recorded",
            tenant_id=tenant_id,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def background_provisioning_failed(self, tenant_id: str, error: Exception) -> None:
        self._logger.error(
            "tenant_background_provisioning_failed",
            tenant_id=tenant_id,
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def tenant_schemas_migrated(self, tenant_count: int) -> None:
        self._logger.info(
            "tenant_schemas_migrated",
            tenant_count=tenant_count,
            **self._get_context_kwargs(),
        )
