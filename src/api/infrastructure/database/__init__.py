"""Database infrastructure: the shared connection pool and schema scoping."""

from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    PoolExhaustedError,
    ScopeLeakError,
)

__all__ = [
    "DatabaseConnectionError",
    "DatabaseError",
    "PoolExhaustedError",
    "ScopeLeakError",
]
