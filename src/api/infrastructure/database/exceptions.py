"""Database-specific exceptions shared by every bounded context."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the pool cannot be opened or a connection cannot be obtained."""

    pass


class PoolExhaustedError(DatabaseConnectionError):
    """Raised when a checkout waited past the pool timeout.

    Every connection up to the configured maximum was in use for the
    whole wait.
    """

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Connection pool exhausted after waiting {timeout_seconds:g}s"
        )
        self.timeout_seconds = timeout_seconds


class ScopeLeakError(DatabaseError):
    """Raised when a connection is released while still bound to a schema.

    This is a programming error: the reset path was bypassed. The
    offending connection is invalidated before this is raised, so it is
    never handed to another caller.
    """

    def __init__(self, schema_name: str):
        super().__init__(
            "Connection released to the pool while still bound to a schema"
        )
        self.schema_name = schema_name
