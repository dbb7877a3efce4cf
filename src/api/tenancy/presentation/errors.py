"""HTTP mapping for tenancy and database errors.

Responses are deliberately terse. Schema names and raw database messages
stay in the logs; a migration failure names only the failing script.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from infrastructure.database.exceptions import (
    DatabaseError,
    PoolExhaustedError,
    ScopeLeakError,
)
from shared_kernel.identifiers import InvalidSchemaNameError
from tenancy.domain.exceptions import (
    ConflictError,
    DuplicateMigrationVersionError,
    InvalidMigrationNameError,
    InvalidPreparationTransitionError,
    MigrationFailureError,
    TenancyError,
    TenantContextMissingError,
    TenantInactiveError,
    TenantNotFoundError,
    TenantNotReadyError,
)


def tenancy_error_response(exc: TenancyError) -> JSONResponse:
    """Translate a tenancy error into its HTTP response."""
    if isinstance(exc, ConflictError):
        return _error(
            status.HTTP_409_CONFLICT,
            f"A tenant with this {exc.field} already exists",
        )
    if isinstance(exc, TenantNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Tenant not found")
    if isinstance(exc, TenantContextMissingError):
        return _error(status.HTTP_400_BAD_REQUEST, "Tenant context is required")
    if isinstance(exc, TenantInactiveError):
        return _error(status.HTTP_403_FORBIDDEN, "Tenant is not active")
    if isinstance(exc, TenantNotReadyError):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Tenant is not ready",
                "preparation_status": exc.preparation_status,
            },
        )
    if isinstance(exc, InvalidPreparationTransitionError):
        return _error(
            status.HTTP_409_CONFLICT,
            f"Tenant preparation is {exc.current}; cannot move to {exc.target}",
        )
    if isinstance(exc, MigrationFailureError):
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Migration {exc.script_name} failed",
        )
    if isinstance(exc, (InvalidMigrationNameError, DuplicateMigrationVersionError)):
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Migration scripts are misconfigured",
        )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Tenancy error")


def database_error_response(exc: DatabaseError) -> JSONResponse:
    """Translate an infrastructure database error into its HTTP response."""
    if isinstance(exc, PoolExhaustedError):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Database is busy")
    if isinstance(exc, ScopeLeakError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the tenancy handlers on ``app``.

    Handlers also cover errors raised by dependencies, such as the tenant
    context dependency failing to resolve a tenant.
    """

    async def handle_tenancy_error(request: Request, exc: TenancyError):
        return tenancy_error_response(exc)

    async def handle_database_error(request: Request, exc: DatabaseError):
        return database_error_response(exc)

    async def handle_invalid_schema_name(
        request: Request, exc: InvalidSchemaNameError
    ):
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid schema name")

    app.add_exception_handler(TenancyError, handle_tenancy_error)
    app.add_exception_handler(DatabaseError, handle_database_error)
    app.add_exception_handler(InvalidSchemaNameError, handle_invalid_schema_name)


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})
