"""Binding pooled connections to a single schema.

A scoped connection moves through a fixed sequence: checked out, bound
with ``SET search_path``, used by one caller, reset to the neutral search
path, released. ``SchemaScope.scoped`` runs the last two steps in
``finally`` blocks so they happen on every exit path.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import exc as sa_exc

from infrastructure.database.connection_pool import BOUND_SCHEMA_KEY
from infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)
from shared_kernel.identifiers import quote_schema_name, validate_schema_name

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from infrastructure.database.connection_pool import ConnectionPool


class SchemaScope:
    """Binds and unbinds connections to a schema namespace.

    The binding is session-level: it is committed immediately, so a later
    rollback by the caller does not silently undo it.
    """

    def __init__(
        self,
        neutral_search_path: str = "public",
        fallback_schema: str = "public",
        probe: ConnectionProbe | None = None,
    ):
        """Initialize the scope binder.

        Args:
            neutral_search_path: Schema restored on reset
            fallback_schema: Schema searched after the bound schema, for
                shared reference tables
            probe: Optional observability probe
        """
        self._neutral = validate_schema_name(neutral_search_path)
        self._fallback = validate_schema_name(fallback_schema)
        self._probe = probe or DefaultConnectionProbe()

    @staticmethod
    def bound_schema(conn: Connection) -> str | None:
        """Return the schema a connection is bound to, if any."""
        return conn.info.get(BOUND_SCHEMA_KEY)

    def bind(self, conn: Connection, schema_name: str) -> None:
        """Restrict unqualified table references on ``conn`` to ``schema_name``.

        The connection is marked as bound before the statement runs, so a
        failed bind still has to go through ``reset``.

        Raises:
            InvalidSchemaNameError: If ``schema_name`` fails validation.
        """
        search_path = quote_schema_name(schema_name)
        if schema_name != self._fallback:
            search_path = f"{search_path}, {quote_schema_name(self._fallback)}"

        conn.info[BOUND_SCHEMA_KEY] = schema_name
        self._set_search_path(conn, search_path)
        self._probe.scope_bound(schema_name=schema_name)

    def reset(self, conn: Connection) -> None:
        """Return ``conn`` to the neutral search path.

        Any uncommitted work on the connection is rolled back first. If the
        reset itself fails the connection is invalidated, so the pool closes
        it instead of handing it to another tenant.
        """
        if conn.invalidated:
            # The DBAPI connection is already gone and will not be reused
            return

        schema_name = conn.info.get(BOUND_SCHEMA_KEY, "")
        try:
            if conn.in_transaction():
                conn.rollback()
            self._set_search_path(conn, quote_schema_name(self._neutral))
        except sa_exc.SQLAlchemyError as e:
            self._probe.scope_reset_failed(schema_name=schema_name, error=e)
            conn.info.pop(BOUND_SCHEMA_KEY, None)
            conn.invalidate()
            self._probe.connection_invalidated(reason="scope_reset_failed")
            return

        conn.info.pop(BOUND_SCHEMA_KEY, None)
        self._probe.scope_reset(schema_name=schema_name)

    @contextmanager
    def scoped(self, pool: ConnectionPool, schema_name: str) -> Iterator[Connection]:
        """Check out a connection bound to ``schema_name`` for one unit of work.

        Bind happens before the block runs; reset and release happen after
        it, whether the block returns, raises or is abandoned.
        """
        validate_schema_name(schema_name)
        conn = pool.checkout()
        try:
            self.bind(conn, schema_name)
            yield conn
        finally:
            try:
                self.reset(conn)
            finally:
                pool.release(conn)

    def _set_search_path(self, conn: Connection, search_path: str) -> None:
        conn.exec_driver_sql(f"SET search_path TO {search_path}")
        conn.commit()
