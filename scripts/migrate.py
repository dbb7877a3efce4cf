#!/usr/bin/env python3
"""Operator CLI for schema migrations and tenant provisioning.

This script:
- Applies the shared migration set to the ``shared`` schema
- Brings every ready tenant schema up to the current tenant script set
- Retries provisioning of a failed tenant
- Marks a tenant stuck in ``preparing`` as failed so it can be retried
- Shows tenants with their preparation status and applied migrations

Database and tenancy settings come from CAMPUS_DB_* and CAMPUS_TENANCY_*
environment variables (or .env), as for the API.

Usage:
    ./scripts/migrate.py shared
    ./scripts/migrate.py tenants
    ./scripts/migrate.py retry <tenant-id>
    ./scripts/migrate.py mark-failed <tenant-id> --reason "worker crashed"
    ./scripts/migrate.py status [<tenant-id>]
"""

import argparse
import sys

from rich.console import Console
from rich.table import Table

from infrastructure.database.connection_pool import ConnectionPool
from infrastructure.database.exceptions import DatabaseError
from infrastructure.logging import configure_logging
from infrastructure.settings import get_settings
from shared_kernel.auditing import AuditAction, AuditEvent
from tenancy.container import TenancyContainer, build_container
from tenancy.domain.exceptions import TenancyError
from tenancy.domain.value_objects import TenantId

console = Console()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run schema migrations and manage tenant provisioning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s shared
  %(prog)s tenants
  %(prog)s retry 01HXYZ...
  %(prog)s mark-failed 01HXYZ... --reason "worker crashed"
  %(prog)s status
        """,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug events (scope binding, pool checkouts)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("shared", help="Apply the shared migration set")
    commands.add_parser("tenants", help="Migrate every ready tenant schema")

    retry = commands.add_parser("retry", help="Provision a failed tenant again")
    retry.add_argument("tenant_id", help="Tenant ID (ULID)")

    mark_failed = commands.add_parser(
        "mark-failed",
        help="Mark a tenant stuck in preparing as failed",
    )
    mark_failed.add_argument("tenant_id", help="Tenant ID (ULID)")
    mark_failed.add_argument(
        "--reason",
        default="Marked failed by operator",
        help="Failure message shown to clients polling the status",
    )

    status = commands.add_parser("status", help="Show preparation status")
    status.add_argument("tenant_id", nargs="?", help="Only show this tenant")

    return parser.parse_args(argv)


def parse_tenant_id(value: str) -> TenantId:
    try:
        return TenantId.from_string(value)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] Not a tenant ID: {value}")
        sys.exit(2)


def migrate_shared(container: TenancyContainer) -> None:
    result = container.migrate_shared_schema()
    for name in result.applied:
        console.print(f"[green]✓[/green] {name}")
    console.print(
        f"Shared schema: {len(result.applied)} applied, "
        f"{len(result.skipped)} already applied"
    )


def migrate_tenants(container: TenancyContainer) -> None:
    results = container.provisioner.migrate_existing_tenants()
    for result in results:
        console.print(
            f"[green]✓[/green] {result.schema_name}: "
            f"{len(result.applied)} applied, {len(result.skipped)} already applied"
        )
    console.print(f"Migrated {len(results)} tenant schema(s)")


def retry(container: TenancyContainer, tenant_id: TenantId) -> None:
    tenant = container.provisioner.retry_provisioning(tenant_id)
    console.print(
        f"[green]✓[/green] Tenant {tenant.id.value} is {tenant.preparation.status}"
    )


def mark_failed(container: TenancyContainer, tenant_id: TenantId, reason: str) -> None:
    tenant = container.tracker.fail(tenant_id, reason)
    container.audit.record(
        AuditEvent(
            action=AuditAction.PROVISIONING_FAILED,
            tenant_id=tenant.id.value,
            details={"error": reason, "marked_by": "operator"},
        )
    )
    console.print(
        f"[yellow]![/yellow] Tenant {tenant.id.value} marked failed; "
        f"retry with: migrate.py retry {tenant.id.value}"
    )


def show_status(container: TenancyContainer, tenant_id: TenantId | None) -> None:
    if tenant_id is None:
        tenants = container.registry.list_tenants()
    else:
        tenant = container.registry.get_tenant_by_id(tenant_id)
        tenants = [tenant] if tenant is not None else []

    if not tenants:
        console.print("[yellow]No tenants found[/yellow]")
        return

    table = Table(title="Tenants")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Schema")
    table.add_column("Status")
    table.add_column("Preparation")
    table.add_column("Migrations", justify="right")
    table.add_column("Error")

    for tenant in tenants:
        applied = container.migration_engine.applied_migrations(tenant.schema_name)
        table.add_row(
            tenant.id.value,
            tenant.name,
            tenant.schema_name,
            str(tenant.status),
            str(tenant.preparation.status),
            str(len(applied)),
            tenant.preparation.error or "",
        )
    console.print(table)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(debug=args.debug or settings.debug)

    pool = ConnectionPool(settings.database)
    try:
        pool.open()
        container = build_container(pool, settings.tenancy)

        if args.command == "shared":
            migrate_shared(container)
        elif args.command == "tenants":
            migrate_tenants(container)
        elif args.command == "retry":
            retry(container, parse_tenant_id(args.tenant_id))
        elif args.command == "mark-failed":
            mark_failed(container, parse_tenant_id(args.tenant_id), args.reason)
        elif args.command == "status":
            tenant_id = parse_tenant_id(args.tenant_id) if args.tenant_id else None
            show_status(container, tenant_id)
    except (TenancyError, DatabaseError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1
    finally:
        pool.close_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
