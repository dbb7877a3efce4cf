"""Domain probe for application startup and lifecycle events.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events during application initialization and shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StartupProbe(Protocol):
    """Domain probe for application startup operations."""

    def application_starting(self, version: str) -> None:
        """Record that the application lifespan started."""
        ...

    def shared_migrations_completed(self, applied: int, skipped: int) -> None:
        """Record the outcome of the startup shared migration run."""
        ...

    def tenant_migrations_completed(self, tenant_count: int) -> None:
        """Record that every ready tenant schema was brought up to date."""
        ...

    def startup_failed(self, error: Exception) -> None:
        """Record that startup aborted."""
        ...

    def application_stopped(self) -> None:
        """Record that the application lifespan ended."""
        ...

    def with_context(self, context: ObservationContext) -> StartupProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStartupProbe:
    """Default implementation of StartupProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultStartupProbe:
        """Create a new probe with observation context bound."""
        return DefaultStartupProbe(logger=self._logger, context=context)

    def application_starting(self, version: str) -> None:
        self._logger.info(
            "application_starting",
            version=version,
            **self._get_context_kwargs(),
        )

    def shared_migrations_completed(self, applied: int, skipped: int) -> None:
        self._logger.info(
            "startup_shared_migrations_completed",
            applied=applied,
            skipped=skipped,
            **self._get_context_kwargs(),
        )

    def tenant_migrations_completed(self, tenant_count: int) -> None:
        self._logger.info(
            "startup_tenant_migrations_completed",
            tenant_count=tenant_count,
            **self._get_context_kwargs(),
        )

    def startup_failed(self, error: Exception) -> None:
        self._logger.error(
            "application_startup_failed",
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def application_stopped(self) -> None:
        self._logger.info(
            "application_stopped",
            **self._get_context_kwargs(),
        )
