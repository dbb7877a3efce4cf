"""Unit tests for ConnectionPool.

Pools are built over SQLite engines through ``engine_factory`` so that
checkout, return, exhaustion and the scope leak guard run against a
real SQLAlchemy QueuePool.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import QueuePool

from infrastructure.database.connection_pool import BOUND_SCHEMA_KEY, ConnectionPool
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    PoolExhaustedError,
    ScopeLeakError,
)
from infrastructure.observability.probes import ConnectionProbe


def queue_pool_engine(size: int = 1, timeout: float = 0.1):
    return create_engine(
        "sqlite://",
        poolclass=QueuePool,
        pool_size=size,
        max_overflow=0,
        pool_timeout=timeout,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def mock_probe():
    return MagicMock(spec=ConnectionProbe)


@pytest.fixture
def engine():
    engine = queue_pool_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def pool(db_settings, engine, mock_probe):
    pool = ConnectionPool(
        db_settings, probe=mock_probe, engine_factory=lambda _: engine
    )
    pool.open()
    yield pool
    pool.close_all()


class TestConnectionPoolLifecycle:
    """Tests for open() and close_all()."""

    def test_pool_is_closed_until_opened(self, db_settings):
        """Nothing connects at construction time."""
        factory = MagicMock()
        pool = ConnectionPool(db_settings, engine_factory=factory)

        assert pool.is_open is False
        factory.assert_not_called()

    def test_open_builds_engine_from_settings(self, db_settings, engine, mock_probe):
        factory = MagicMock(return_value=engine)
        pool = ConnectionPool(db_settings, probe=mock_probe, engine_factory=factory)

        pool.open()

        factory.assert_called_once_with(db_settings)
        assert pool.is_open is True
        assert pool.engine is engine
        mock_probe.pool_initialized.assert_called_once_with(min_conn=1, max_conn=2)
        pool.close_all()

    def test_open_twice_is_noop(self, db_settings, engine):
        factory = MagicMock(return_value=engine)
        pool = ConnectionPool(db_settings, engine_factory=factory)

        pool.open()
        pool.open()

        factory.assert_called_once()
        pool.close_all()

    def test_open_raises_when_database_unreachable(self, db_settings, mock_probe):
        """Should wrap connection failures in DatabaseConnectionError."""
        unreachable = create_engine("sqlite:////nonexistent-dir/campus.db")
        pool = ConnectionPool(
            db_settings, probe=mock_probe, engine_factory=lambda _: unreachable
        )

        with pytest.raises(DatabaseConnectionError) as exc_info:
            pool.open()

        assert "Failed to initialize connection pool" in str(exc_info.value)
        assert pool.is_open is False
        mock_probe.pool_initialization_failed.assert_called_once()

    def test_close_all_disposes_engine(self, pool, mock_probe):
        pool.close_all()

        assert pool.is_open is False
        mock_probe.pool_closed.assert_called_once()

    def test_close_all_on_closed_pool_is_noop(self, db_settings, mock_probe):
        pool = ConnectionPool(db_settings, probe=mock_probe)

        pool.close_all()

        mock_probe.pool_closed.assert_not_called()

    def test_engine_raises_when_not_open(self, db_settings):
        pool = ConnectionPool(db_settings)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            pool.engine

        assert "not initialized" in str(exc_info.value)


class TestCheckout:
    """Tests for checkout()."""

    def test_checkout_returns_usable_connection(self, pool, mock_probe):
        conn = pool.checkout()
        try:
            assert conn.execute(text("SELECT 1")).scalar_one() == 1
        finally:
            pool.release(conn)

        mock_probe.connection_acquired_from_pool.assert_called_once()

    def test_checkout_raises_when_pool_closed(self, db_settings):
        pool = ConnectionPool(db_settings)

        with pytest.raises(DatabaseConnectionError):
            pool.checkout()

    def test_saturated_pool_raises_pool_exhausted(self, pool, mock_probe):
        """A checkout blocks up to the timeout, then fails."""
        held = pool.checkout()
        try:
            with pytest.raises(PoolExhaustedError) as exc_info:
                pool.checkout()
        finally:
            pool.release(held)

        assert exc_info.value.timeout_seconds == pool._settings.pool_timeout_seconds
        mock_probe.pool_exhausted.assert_called_once()

    def test_released_connection_can_be_checked_out_again(self, pool):
        pool.release(pool.checkout())

        conn = pool.checkout()
        pool.release(conn)


class TestRelease:
    """Tests for release(), the scope leak guard."""

    def test_release_returns_unscoped_connection(self, pool, mock_probe):
        conn = pool.checkout()

        pool.release(conn)

        assert conn.closed
        mock_probe.connection_returned_to_pool.assert_called_once()

    def test_release_of_bound_connection_raises_scope_leak(self, pool, mock_probe):
        """A connection still bound to a schema must never be reused."""
        conn = pool.checkout()
        conn.info[BOUND_SCHEMA_KEY] = "tenant_acme"

        with pytest.raises(ScopeLeakError) as exc_info:
            pool.release(conn)

        assert exc_info.value.schema_name == "tenant_acme"
        assert conn.closed
        mock_probe.scope_leak_detected.assert_called_once_with(
            schema_name="tenant_acme", stage="release"
        )
        mock_probe.connection_invalidated.assert_called_once_with(reason="scope_leak")

    def test_pool_hands_out_fresh_connection_after_leak(self, pool):
        conn = pool.checkout()
        conn.info[BOUND_SCHEMA_KEY] = "tenant_acme"
        with pytest.raises(ScopeLeakError):
            pool.release(conn)

        fresh = pool.checkout()
        try:
            assert BOUND_SCHEMA_KEY not in fresh.info
        finally:
            pool.release(fresh)

    def test_release_of_invalidated_connection_closes_it(self, pool, mock_probe):
        conn = pool.checkout()
        conn.invalidate()

        pool.release(conn)

        mock_probe.connection_invalidated.assert_called_once_with(
            reason="released_invalidated"
        )
        mock_probe.connection_returned_to_pool.assert_not_called()


class TestScopeGuardListeners:
    """Connections that bypass release() are caught by pool listeners."""

    def test_bound_connection_returned_directly_is_discarded(self, pool, mock_probe):
        conn = pool.checkout()
        conn.info[BOUND_SCHEMA_KEY] = "tenant_acme"

        # Bypass release(): hand the connection straight back to the pool
        conn.close()

        mock_probe.scope_leak_detected.assert_called_once_with(
            schema_name="tenant_acme", stage="checkin"
        )

        fresh = pool.checkout()
        try:
            assert BOUND_SCHEMA_KEY not in fresh.info
        finally:
            pool.release(fresh)
        mock_probe.connection_invalidated.assert_any_call(reason="scope_leak")


class TestConnectionContextManager:
    """Tests for the connection() context manager."""

    def test_connection_released_on_exit(self, pool):
        with pool.connection() as conn:
            conn.execute(text("SELECT 1"))

        assert conn.closed

    def test_connection_released_when_block_raises(self, pool):
        with pytest.raises(RuntimeError):
            with pool.connection() as conn:
                raise RuntimeError("boom")

        assert conn.closed
        # The single pooled connection is available again
        pool.release(pool.checkout())


class TestVerify:
    """Tests for verify()."""

    def test_verify_true_for_open_pool(self, pool):
        assert pool.verify() is True

    def test_verify_false_for_closed_pool(self, db_settings):
        assert ConnectionPool(db_settings).verify() is False
