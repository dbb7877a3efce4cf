"""PostgreSQL implementation of IMigrationLog.

The log lives in ``shared.schema_migrations`` and is keyed on
(schema_name, migration_file). Both the shared schema and every tenant
schema record into the same table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, insert, select
from sqlalchemy.schema import CreateSchema

from infrastructure.database.models import SHARED_SCHEMA
from tenancy.domain.value_objects import SchemaKind
from tenancy.infrastructure.models import SchemaMigrationModel
from tenancy.ports.migrations import IMigrationLog, MigrationRecord

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection


class MigrationLog(IMigrationLog):
    """Applied-migration log stored in the shared schema.

    None of these methods commit; the migration engine commits each log
    entry together with the script it records.
    """

    def ensure_log(self, conn: Connection) -> None:
        """Create the shared schema and the log table if they are missing."""
        if not inspect(conn).has_schema(SHARED_SCHEMA):
            conn.execute(CreateSchema(SHARED_SCHEMA, if_not_exists=True))
        SchemaMigrationModel.__table__.create(conn, checkfirst=True)

    def applied_scripts(self, conn: Connection, schema_name: str) -> set[str]:
        stmt = select(SchemaMigrationModel.migration_file).where(
            SchemaMigrationModel.schema_name == schema_name
        )
        return set(conn.execute(stmt).scalars())

    def record(
        self,
        conn: Connection,
        schema_name: str,
        script_name: str,
        kind: SchemaKind,
        execution_time_ms: int,
    ) -> None:
        conn.execute(
            insert(SchemaMigrationModel).values(
                schema_name=schema_name,
                migration_file=script_name,
                schema_kind=kind.value,
                execution_time_ms=execution_time_ms,
            )
        )

    def list_records(self, conn: Connection, schema_name: str) -> list[MigrationRecord]:
        """Applied records for ``schema_name``, in script order."""
        stmt = (
            select(
                SchemaMigrationModel.schema_name,
                SchemaMigrationModel.migration_file,
                SchemaMigrationModel.schema_kind,
                SchemaMigrationModel.applied_at,
                SchemaMigrationModel.execution_time_ms,
            )
            .where(SchemaMigrationModel.schema_name == schema_name)
            .order_by(SchemaMigrationModel.migration_file)
        )
        return [
            MigrationRecord(
                schema_name=row.schema_name,
                migration_file=row.migration_file,
                schema_kind=SchemaKind(row.schema_kind),
                applied_at=row.applied_at,
                execution_time_ms=row.execution_time_ms,
            )
            for row in conn.execute(stmt)
        ]
