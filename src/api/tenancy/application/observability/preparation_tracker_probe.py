"""Domain probe for the preparation tracker."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class PreparationTrackerProbe(Protocol):
    """Domain probe for preparation status transitions."""

    def preparation_transitioned(self, tenant_id: str, status: str) -> None:
        """Record that a tenant's preparation status changed."""
        ...

    def preparation_status_checked(self, tenant_id: str, status: str) -> None:
        """Record that a client polled the preparation status."""
        ...

    def with_context(self, context: ObservationContext) -> PreparationTrackerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultPreparationTrackerProbe:
    """Default implementation of PreparationTrackerProbe using structlog."""

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

    def with_context(
        self, context: ObservationContext
    ) -> DefaultPreparationTrackerProbe:
        """Create a new probe with observation context bound."""
        return DefaultPreparationTrackerProbe(logger=self._logger, context=context)

    def preparation_transitioned(self, tenant_id: str, status: str) -> None:
        """Record that a tenant's preparation status changed."""
        self._logger.info(
            "tenant_preparation_transitioned",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )

    def preparation_status_checked(self, tenant_id: str, status: str) -> None:
        """Record that a client polled the preparation status."""
        self._logger.debug(
            "tenant_preparation_status_checked",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )
