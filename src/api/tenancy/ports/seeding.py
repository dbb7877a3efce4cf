"""Port for inserting the reference rows a new tenant schema needs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tenancy.domain.aggregates import Tenant

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection


@runtime_checkable
class TenantSeeder(Protocol):
    """Seeds a freshly migrated tenant schema.

    Implementations must use upserts keyed on natural unique columns so a
    repeated provisioning attempt never duplicates rows.
    """

    def seed(self, conn: Connection, tenant: Tenant) -> None:
        """Insert or refresh baseline rows through a connection bound to the tenant."""
        ...
