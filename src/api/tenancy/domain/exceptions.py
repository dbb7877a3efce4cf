"""Domain exceptions for the tenancy bounded context.

Each class is one error kind. The kind is preserved from the point of
failure to the HTTP boundary, which decides the status code; messages on
these exceptions are for operators and logs, not for clients.
"""

from __future__ import annotations


class TenancyError(Exception):
    """Base class for tenancy errors."""

    pass


class ConflictError(TenancyError):
    """Raised when a tenant's schema name (or domain) is already taken.

    Recoverable: the caller can retry with a different name or an explicit
    schema name.
    """

    def __init__(self, value: str, field: str = "schema_name"):
        super().__init__(f"{field} '{value}' is already taken")
        self.value = value
        self.field = field


class TenantNotFoundError(TenancyError):
    """Raised when a tenant lookup or resolution matches nothing."""

    pass


class TenantContextMissingError(TenancyError):
    """Raised when an operation requires a tenant context and none was given."""

    pass


class TenantInactiveError(TenancyError):
    """Raised when a resolved tenant is suspended, cancelled or being deleted."""

    def __init__(self, tenant_id: str, status: str):
        super().__init__(f"Tenant {tenant_id} is {status}")
        self.tenant_id = tenant_id
        self.status = status


class TenantNotReadyError(TenancyError):
    """Raised when a resolved tenant's schema has not finished provisioning.

    Clients can poll the preparation status until it becomes ready or failed.
    """

    def __init__(self, tenant_id: str, preparation_status: str):
        super().__init__(
            f"Tenant {tenant_id} is not ready (preparation {preparation_status})"
        )
        self.tenant_id = tenant_id
        self.preparation_status = preparation_status


class InvalidPreparationTransitionError(TenancyError):
    """Raised when a preparation status change is not allowed.

    Preparation only moves forward. The one backward edge is
    failed -> preparing, for a retry. This error is also how a second
    provisioning attempt loses the race for a tenant that is already being
    prepared.
    """

    def __init__(self, tenant_id: str, current: str | None, target: str):
        super().__init__(
            f"Tenant {tenant_id}: cannot move preparation from {current} to {target}"
        )
        self.tenant_id = tenant_id
        self.current = current
        self.target = target


class MigrationFailureError(TenancyError):
    """Raised when a migration script fails.

    The run stops at this script. Scripts before it stay applied; this one
    and everything after it are attempted again on the next run.

    Attributes:
        script_name: File name of the failing script
        schema_name: Schema the script was applied to
        cause: The underlying database error
    """

    def __init__(self, script_name: str, schema_name: str, cause: BaseException):
        super().__init__(
            f"Migration {script_name} failed on schema {schema_name}: {cause}"
        )
        self.script_name = script_name
        self.schema_name = schema_name
        self.cause = cause


class InvalidMigrationNameError(TenancyError):
    """Raised when a migration file does not follow NNN_description.sql."""

    pass


class DuplicateMigrationVersionError(TenancyError):
    """Raised when two migration files share a version prefix."""

    pass
