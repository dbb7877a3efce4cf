"""Baseline rows for a new tenant schema.

Statements use unqualified table names; the connection passed in is
already bound to the tenant's schema.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

from tenancy.domain.aggregates import Tenant
from tenancy.ports.seeding import TenantSeeder

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

_UPSERT_SCHOOL = text(
    """
    INSERT INTO schools (code, name)
    VALUES (:code, :name)
    ON CONFLICT (code) DO UPDATE
        SET name = excluded.name,
            updated_at = CURRENT_TIMESTAMP
    """
)

_UPSERT_BRANDING = text(
    """
    INSERT INTO branding_settings (school_code, display_name)
    VALUES (:code, :name)
    ON CONFLICT (school_code) DO NOTHING
    """
)


class BaselineSeeder(TenantSeeder):
    """Upserts the root school record and its default branding.

    The school is keyed on ``code``, which is the tenant's schema name and
    therefore never changes. Branding a tenant has already customised is
    left alone.
    """

    def seed(self, conn: Connection, tenant: Tenant) -> None:
        params = {"code": tenant.schema_name, "name": tenant.name}
        conn.execute(_UPSERT_SCHOOL, params)
        conn.execute(_UPSERT_BRANDING, params)
