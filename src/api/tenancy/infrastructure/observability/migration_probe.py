"""Domain probe for migration runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class MigrationProbe(Protocol):
    """Domain probe for the migration engine."""

    def run_started(self, schema_name: str, kind: str, script_count: int) -> None:
        """Record that a migration run began."""
        ...

    def script_applied(
        self,
        schema_name: str,
        script_name: str,
        execution_time_ms: int,
    ) -> None:
        """Record that a script was executed and logged."""
        ...

    def script_skipped(self, schema_name: str, script_name: str) -> None:
        """Record that a script was already applied."""
        ...

    def script_failed(
        self,
        schema_name: str,
        script_name: str,
        error: Exception,
    ) -> None:
        """Record that a script failed and the run stopped."""
        ...

    def run_completed(self, schema_name: str, applied: int, skipped: int) -> None:
        """Record the outcome of a successful run."""
        ...

    def with_context(self, context: ObservationContext) -> MigrationProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultMigrationProbe:
    """Default implementation of MigrationProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultMigrationProbe:
        """Create a new probe with observation context bound."""
        return DefaultMigrationProbe(logger=self._logger, context=context)

    def run_started(self, schema_name: str, kind: str, script_count: int) -> None:
        self._logger.info(
            "migration_run_started",
            schema_name=schema_name,
            kind=kind,
            script_count=script_count,
            **self._get_context_kwargs(),
        )

    def script_applied(
        self,
        schema_name: str,
        script_name: str,
        execution_time_ms: int,
    ) -> None:
        self._logger.info(
            "migration_applied",
            schema_name=schema_name,
            script_name=script_name,
            execution_time_ms=execution_time_ms,
            **self._get_context_kwargs(),
        )

    def script_skipped(self, schema_name: str, script_name: str) -> None:
        self._logger.debug(
            "migration_skipped",
            schema_name=schema_name,
            script_name=script_name,
            **self._get_context_kwargs(),
        )

    def script_failed(
        self,
        schema_name: str,
        script_name: str,
        error: Exception,
    ) -> None:
        """Record that a script failed and the run stopped.

        The full database error is logged here for operators; it is not
        repeated to API clients.
        """
        self._logger.error(
            "migration_failed",
            schema_name=schema_name,
            script_name=script_name,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def run_completed(self, schema_name: str, applied: int, skipped: int) -> None:
        self._logger.info(
            "migration_run_completed",
            schema_name=schema_name,
            applied=applied,
            skipped=skipped,
            **self._get_context_kwargs(),
        )
