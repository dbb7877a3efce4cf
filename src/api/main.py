"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.dependencies import get_connection_pool
from infrastructure.logging import configure_logging
from infrastructure.observability import DefaultStartupProbe
from infrastructure.settings import get_settings
from infrastructure.version import __version__
from tenancy.container import build_container
from tenancy.presentation import context_router, register_exception_handlers
from tenancy.presentation import router as tenancy_router

configure_logging(debug=get_settings().debug)


@asynccontextmanager
async def campus_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Connection pool lifecycle (opened on startup, closed on shutdown)
    - Shared schema migrations, and optionally tenant schema migrations
    - The tenancy service graph on ``app.state.tenancy``
    """
    settings = get_settings()
    probe = DefaultStartupProbe()
    probe.application_starting(version=__version__)

    pool = ConnectionPool(settings.database)
    pool.open()
    try:
        container = build_container(pool, settings.tenancy)

        if settings.tenancy.run_shared_migrations_on_startup:
            result = container.migrate_shared_schema()
            probe.shared_migrations_completed(
                applied=len(result.applied),
                skipped=len(result.skipped),
            )

        if settings.tenancy.migrate_tenants_on_startup:
            results = container.provisioner.migrate_existing_tenants()
            probe.tenant_migrations_completed(tenant_count=len(results))

        app.state.pool = pool
        app.state.tenancy = container
    except Exception as e:
        probe.startup_failed(error=e)
        pool.close_all()
        raise

    try:
        yield
    finally:
        pool.close_all()
        probe.application_stopped()


app = FastAPI(
    title=get_settings().app_name,
    description="Schema-per-tenant school management platform",
    version=__version__,
    lifespan=campus_lifespan,
)

register_exception_handlers(app)

# Include Tenancy bounded context routes
app.include_router(tenancy_router)
app.include_router(context_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/db")
def health_db(
    pool: Annotated[ConnectionPool, Depends(get_connection_pool)],
) -> dict:
    """Check database connection health."""
    is_healthy = pool.verify()
    return {
        "status": "ok" if is_healthy else "unhealthy",
        "pool_open": pool.is_open,
    }
