"""Domain probes for infrastructure observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping infrastructure code clean and testable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ConnectionProbe(Protocol):
    """Domain probe for pooled connections and their schema scope.

    This probe captures domain-significant events related to the shared
    connection pool without exposing logging implementation details.
    """

    def pool_initialized(self, min_conn: int, max_conn: int) -> None:
        """Record that connection pool was initialized."""
        ...

    def pool_initialization_failed(self, error: Exception) -> None:
        """Record that pool initialization failed."""
        ...

    def connection_acquired_from_pool(self) -> None:
        """Record that a connection was acquired from the pool."""
        ...

    def connection_returned_to_pool(self) -> None:
        """Record that a connection was returned to the pool."""
        ...

    def pool_exhausted(self, timeout_seconds: float) -> None:
        """Record that a checkout timed out on a saturated pool."""
        ...

    def connection_return_failed(self, error: Exception) -> None:
        """Record that returning connection to pool failed."""
        ...

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        ...

    def scope_bound(self, schema_name: str) -> None:
        """Record that a connection was bound to a schema."""
        ...

    def scope_reset(self, schema_name: str) -> None:
        """Record that a connection was returned to the neutral search path."""
        ...

    def scope_reset_failed(self, schema_name: str, error: Exception) -> None:
        """Record that resetting a connection's scope failed."""
        ...

    def scope_leak_detected(self, schema_name: str, stage: str) -> None:
        """Record that a connection reached the pool still bound to a schema."""
        ...

    def connection_invalidated(self, reason: str) -> None:
        """Record that a connection was discarded instead of reused."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultConnectionProbe:
    """Default implementation of ConnectionProbe using structlog.

    Supports observation context for including request-scoped metadata
    with all log events.
    """

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

    def with_context(self, context: ObservationContext) -> DefaultConnectionProbe:
        """Create a new probe with observation context bound."""
        return DefaultConnectionProbe(logger=self._logger, context=context)

    def pool_initialized(self, min_conn: int, max_conn: int) -> None:
        """Record that connection pool was initialized."""
        self._logger.info(
            "connection_pool_initialized",
            min_connections=min_conn,
            max_connections=max_conn,
            **self._get_context_kwargs(),
        )

    def pool_initialization_failed(self, error: Exception) -> None:
        """Record that pool initialization failed."""
        self._logger.error(
            "connection_pool_initialization_failed",
            error=str(error),
            **self._get_context_kwargs(),
        )

    def connection_acquired_from_pool(self) -> None:
        """Record that a connection was acquired from the pool."""
        self._logger.debug(
            "connection_acquired_from_pool",
            **self._get_context_kwargs(),
        )

    def connection_returned_to_pool(self) -> None:
        """Record that a connection was returned to the pool."""
        self._logger.debug(
            "connection_returned_to_pool",
            **self._get_context_kwargs(),
        )

    def pool_exhausted(self, timeout_seconds: float) -> None:
        """Record that a checkout timed out on a saturated pool."""
        self._logger.warning(
            "connection_pool_exhausted",
            timeout_seconds=timeout_seconds,
            **self._get_context_kwargs(),
        )

    def connection_return_failed(self, error: Exception) -> None:
        """Record that returning connection to pool failed."""
        self._logger.error(
            "connection_return_failed",
            error=str(error),
            **self._get_context_kwargs(),
        )

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        self._logger.info(
            "connection_pool_closed",
            **self._get_context_kwargs(),
        )

    def scope_bound(self, schema_name: str) -> None:
        self._logger.debug(
            "connection_scope_bound",
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def scope_reset(self, schema_name: str) -> None:
        self._logger.debug(
            "connection_scope_reset",
            schema_name=schema_name,
            **self._get_context_kwargs(),
        )

    def scope_reset_failed(self, schema_name: str, error: Exception) -> None:
        """Record that resetting a connection's scope failed."""
        self._logger.error(
            "connection_scope_reset_failed",
            schema_name=schema_name,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def scope_leak_detected(self, schema_name: str, stage: str) -> None:
        """Record that a connection reached the pool still bound to a schema.

        This is a programming error: some caller bypassed the reset path.
        """
        self._logger.critical(
            "connection_scope_leak_detected",
            schema_name=schema_name,
            stage=stage,
            **self._get_context_kwargs(),
        )

    def connection_invalidated(self, reason: str) -> None:
        """Record that a connection was discarded instead of reused."""
        self._logger.warning(
            "connection_invalidated",
            reason=reason,
            **self._get_context_kwargs(),
        )
