"""Connection pool shared by every tenant.

This module wraps the QueuePool of a SQLAlchemy engine with an explicit
lifecycle and a guard that refuses to take back a connection still bound
to a tenant schema.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy import exc as sa_exc

from infrastructure.database.engines import create_pool_engine
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    PoolExhaustedError,
    ScopeLeakError,
)
from infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine

    from infrastructure.settings import DatabaseSettings

# Key in Connection.info (shared with the pool's connection record) holding
# the schema a connection is currently bound to.
BOUND_SCHEMA_KEY = "campus.bound_schema"


class ConnectionPool:
    """Thread-safe connection pool for PostgreSQL.

    Wraps the QueuePool of a SQLAlchemy engine. The pool is a constructed
    resource: nothing connects until ``open()`` is called, and
    ``close_all()`` disposes every pooled connection.

    ``release()`` is the only sanctioned way back into the pool. A
    connection that still carries a bound schema is invalidated and
    ``ScopeLeakError`` is raised. Connections that reach the pool by any
    other route are caught by the checkout listener, which discards them
    before they can be handed to another caller.

    Attributes:
        _settings: Database configuration settings
        _engine: Engine owning the pool, or None while closed
        _probe: Observability probe for monitoring
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: ConnectionProbe | None = None,
        engine_factory: Callable[[DatabaseSettings], Engine] | None = None,
    ):
        """Initialize the connection pool.

        Args:
            settings: Database connection settings
            probe: Optional observability probe
            engine_factory: Builds the engine on ``open()``; defaults to a
                psycopg2 engine sized from ``settings``
        """
        self._settings = settings
        self._probe = probe or DefaultConnectionProbe()
        self._engine_factory = engine_factory or create_pool_engine
        self._engine: Engine | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        """Whether ``open()`` has been called without a matching ``close_all()``."""
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        """The engine backing the pool.

        Raises:
            DatabaseConnectionError: If the pool is not open.
        """
        if self._engine is None:
            raise DatabaseConnectionError("Connection pool not initialized")
        return self._engine

    def open(self) -> None:
        """Create the engine and verify the database is reachable.

        Calling ``open()`` on an open pool is a no-op.

        Raises:
            DatabaseConnectionError: If the database cannot be reached.
        """
        with self._lock:
            if self._engine is not None:
                return

            engine = self._engine_factory(self._settings)
            self._install_scope_guards(engine)
            try:
                with engine.connect():
                    pass
            except sa_exc.SQLAlchemyError as e:
                engine.dispose()
                self._probe.pool_initialization_failed(error=e)
                raise DatabaseConnectionError(
                    f"Failed to initialize connection pool: {e}"
                ) from e

            self._engine = engine
            self._probe.pool_initialized(
                min_conn=self._settings.pool_min_connections,
                max_conn=self._settings.pool_max_connections,
            )

    def checkout(self) -> Connection:
        """Get a connection from the pool.

        Blocks while the pool is saturated, for at most
        ``pool_timeout_seconds``.

        Returns:
            A connection with no schema bound.

        Raises:
            PoolExhaustedError: If no connection became free in time.
            DatabaseConnectionError: If the pool is not open or connecting fails.
        """
        engine = self.engine
        try:
            conn = engine.connect()
        except sa_exc.TimeoutError as e:
            self._probe.pool_exhausted(
                timeout_seconds=self._settings.pool_timeout_seconds
            )
            raise PoolExhaustedError(self._settings.pool_timeout_seconds) from e
        except sa_exc.DBAPIError as e:
            raise DatabaseConnectionError(
                f"Failed to get connection from pool: {e}"
            ) from e

        self._probe.connection_acquired_from_pool()
        return conn

    def release(self, conn: Connection) -> None:
        """Return a connection to the pool.

        Args:
            conn: A connection obtained from ``checkout()``.

        Raises:
            ScopeLeakError: If the connection is still bound to a schema.
                The connection is invalidated first, so it is never reused.
        """
        if conn.invalidated:
            conn.close()
            self._probe.connection_invalidated(reason="released_invalidated")
            return

        schema_name = conn.info.pop(BOUND_SCHEMA_KEY, None)
        if schema_name is not None:
            self._probe.scope_leak_detected(schema_name=schema_name, stage="release")
            conn.invalidate()
            conn.close()
            self._probe.connection_invalidated(reason="scope_leak")
            raise ScopeLeakError(schema_name)

        try:
            conn.close()
            self._probe.connection_returned_to_pool()
        except sa_exc.SQLAlchemyError as e:
            # The pool discards a connection whose reset-on-return failed
            self._probe.connection_return_failed(error=e)

    def verify(self) -> bool:
        """Whether a pooled connection can run a trivial query."""
        try:
            with self.connection() as conn:
                conn.execute(text("SELECT 1"))
        except (DatabaseError, sa_exc.SQLAlchemyError):
            return False
        return True

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Check out an unscoped connection for the duration of a block."""
        conn = self.checkout()
        try:
            yield conn
        finally:
            self.release(conn)

    def close_all(self) -> None:
        """Close all connections in the pool."""
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
                self._probe.pool_closed()

    def _install_scope_guards(self, engine: Engine) -> None:
        """Attach pool listeners that catch connections bypassing ``release()``."""
        probe = self._probe

        def on_checkin(dbapi_connection, connection_record) -> None:
            schema_name = connection_record.info.get(BOUND_SCHEMA_KEY)
            if schema_name is not None:
                probe.scope_leak_detected(schema_name=schema_name, stage="checkin")

        def on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:
            schema_name = connection_record.info.pop(BOUND_SCHEMA_KEY, None)
            if schema_name is not None:
                probe.connection_invalidated(reason="scope_leak")
                # The pool invalidates the connection and retries with a fresh one
                raise sa_exc.DisconnectionError(
                    "Pooled connection still bound to a schema"
                )

        event.listen(engine, "checkin", on_checkin)
        event.listen(engine, "checkout", on_checkout)
