"""Integration tests for schema isolation on pooled connections.

Requires a running PostgreSQL instance.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text

from infrastructure.database.connection_pool import BOUND_SCHEMA_KEY
from infrastructure.database.exceptions import ScopeLeakError
from tenancy.application.value_objects import Principal, TenantHints

pytestmark = pytest.mark.integration


def current_schema(conn) -> str:
    return conn.execute(text("SELECT current_schema()")).scalar_one()


class TestScopedConnections:
    def test_unqualified_queries_hit_the_bound_schema(self, container, tenant_factory):
        a = tenant_factory("Alpha")
        b = tenant_factory("Beta")

        with container.scope.scoped(container.pool, a.schema_name) as conn:
            conn.execute(
                text(
                    "INSERT INTO teachers (id, full_name, email) "
                    "VALUES ('T1', 'Ada Alpha', 'ada@alpha.example.com')"
                )
            )
            conn.commit()
            assert current_schema(conn) == a.schema_name

        with container.scope.scoped(container.pool, b.schema_name) as conn:
            names = conn.execute(text("SELECT full_name FROM teachers")).scalars().all()
            assert current_schema(conn) == b.schema_name

        assert "Ada Alpha" not in names

    def test_released_connection_is_neutral(self, container, tenant_factory):
        tenant = tenant_factory()

        with container.scope.scoped(container.pool, tenant.schema_name) as conn:
            info = conn.info

        assert BOUND_SCHEMA_KEY not in info
        with container.pool.connection() as conn:
            assert current_schema(conn) == "public"

    def test_rollback_inside_scope_keeps_binding(self, container, tenant_factory):
        tenant = tenant_factory()

        with container.scope.scoped(container.pool, tenant.schema_name) as conn:
            conn.execute(text("SELECT 1"))
            conn.rollback()
            assert current_schema(conn) == tenant.schema_name

    def test_failed_block_still_resets(self, container, tenant_factory):
        tenant = tenant_factory()

        with pytest.raises(RuntimeError):
            with container.scope.scoped(container.pool, tenant.schema_name) as conn:
                conn.execute(text("SELECT 1"))
                raise RuntimeError("handler failed")

        with container.pool.connection() as conn:
            assert current_schema(conn) == "public"

    def test_bypassing_reset_is_caught(self, container, tenant_factory):
        tenant = tenant_factory()
        conn = container.pool.checkout()
        container.scope.bind(conn, tenant.schema_name)

        with pytest.raises(ScopeLeakError):
            container.pool.release(conn)

        with container.pool.connection() as fresh:
            assert current_schema(fresh) == "public"


class HandlerError(Exception):
    pass


class TestConcurrentTenants:
    """Concurrent requests for different tenants never see each other's rows."""

    WORKERS = 6
    ROUNDS = 5

    def test_each_request_sees_only_its_tenant(self, container, tenant_factory):
        tenants = [tenant_factory(f"Parallel {i}") for i in range(3)]
        barrier = threading.Barrier(self.WORKERS, timeout=10)

        def request(index: int) -> list[tuple[str, str]]:
            tenant = tenants[index % len(tenants)]
            principal = Principal(
                user_id=f"user-{index}", role="admin", tenant_id=tenant.id.value
            )
            seen = []
            for round_ in range(self.ROUNDS):
                # Every other request raises after querying its tenant
                fails = (index + round_) % 2 == 1
                try:
                    with container.resolver.tenant_context(
                        principal, TenantHints()
                    ) as ctx:
                        if round_ == 0:
                            barrier.wait()
                        schema = current_schema(ctx.connection)
                        school = ctx.connection.execute(
                            text("SELECT code FROM schools")
                        ).scalar_one()
                        seen.append((schema, school))
                        if fails:
                            raise HandlerError(schema)
                except HandlerError:
                    assert fails
            return seen

        with ThreadPoolExecutor(max_workers=self.WORKERS) as executor:
            results = list(executor.map(request, range(self.WORKERS)))

        for index, seen in enumerate(results):
            expected = tenants[index % len(tenants)].schema_name
            assert seen == [(expected, expected)] * self.ROUNDS

        held = [container.pool.checkout() for _ in range(self.WORKERS)]
        try:
            for conn in held:
                assert BOUND_SCHEMA_KEY not in conn.info
                assert current_schema(conn) == "public"
        finally:
            for conn in held:
                container.pool.release(conn)
