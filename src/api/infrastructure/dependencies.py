"""Shared infrastructure dependencies.

Provides ONLY raw database infrastructure resources (the connection pool).
Does NOT import from bounded contexts to maintain DDD boundaries.
"""

from fastapi import Request

from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.database.exceptions import DatabaseConnectionError


def get_connection_pool(request: Request) -> ConnectionPool:
    """Get the application-scoped connection pool.

    The pool is opened by the application lifespan and shared by every
    request and every tenant.

    Raises:
        DatabaseConnectionError: If startup has not opened the pool
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise DatabaseConnectionError("Connection pool not initialized")
    return pool
