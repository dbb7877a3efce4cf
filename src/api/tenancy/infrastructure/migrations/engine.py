"""Migration engine.

Applies an ordered script set to one schema, skipping scripts the applied
log already records for that schema. Running it twice is a no-op the
second time.

Each script runs on a connection bound to the target schema, and the
script and its log entry commit together. The first failing script is
rolled back and stops the run; the next run starts again at that script.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from shared_kernel.identifiers import validate_schema_name
from tenancy.domain.exceptions import MigrationFailureError
from tenancy.infrastructure.migration_log import MigrationLog
from tenancy.infrastructure.migrations.sources import render_script
from tenancy.infrastructure.observability import (
    DefaultMigrationProbe,
    MigrationProbe,
)
from tenancy.ports.migrations import MigrationRunResult, SchemaMigrator

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from infrastructure.database.connection_pool import ConnectionPool
    from infrastructure.database.schema_scope import SchemaScope
    from tenancy.domain.value_objects import SchemaKind
    from tenancy.ports.migrations import IMigrationLog, MigrationScript, ScriptSource

ScriptExecutor = Callable[["Connection", str], None]


def execute_script(conn: Connection, sql: str) -> None:
    """Run a whole script in one call.

    psycopg2 accepts several ``;``-separated statements in a single
    execute, including ``DO $$ ... $$`` blocks.
    """
    conn.exec_driver_sql(sql)


class MigrationEngine(SchemaMigrator):
    """Applies versioned scripts to the shared schema or a tenant schema."""

    def __init__(
        self,
        pool: ConnectionPool,
        scope: SchemaScope,
        log: IMigrationLog | None = None,
        probe: MigrationProbe | None = None,
        executor: ScriptExecutor | None = None,
    ):
        """Initialize the engine.

        Args:
            pool: Shared connection pool
            scope: Binds the migration connection to the target schema
            log: Applied-migration log; defaults to ``shared.schema_migrations``
            probe: Optional domain probe for observability
            executor: Runs one rendered script on a connection
        """
        self._pool = pool
        self._scope = scope
        self._log = log or MigrationLog()
        self._probe = probe or DefaultMigrationProbe()
        self._executor = executor or execute_script

    def apply_migrations(
        self,
        target_schema: str,
        source: ScriptSource,
    ) -> MigrationRunResult:
        """Apply every script from ``source`` not yet applied to ``target_schema``.

        Args:
            target_schema: Schema to migrate; must already exist
            source: Scripts in execution order

        Returns:
            Which scripts were applied and which were skipped

        Raises:
            MigrationFailureError: Naming the first script that failed.
                Earlier scripts in the run stay applied.
            InvalidSchemaNameError: If ``target_schema`` is not a valid identifier.
        """
        validate_schema_name(target_schema)
        scripts = list(source.scripts())
        self._probe.run_started(
            schema_name=target_schema,
            kind=str(source.kind),
            script_count=len(scripts),
        )

        applied: list[str] = []
        skipped: list[str] = []

        with self._scope.scoped(self._pool, target_schema) as conn:
            self._log.ensure_log(conn)
            already_applied = self._log.applied_scripts(conn, target_schema)
            conn.commit()

            for script in scripts:
                if script.name in already_applied:
                    skipped.append(script.name)
                    self._probe.script_skipped(
                        schema_name=target_schema,
                        script_name=script.name,
                    )
                    continue

                self._apply_script(conn, target_schema, source.kind, script)
                applied.append(script.name)

        self._probe.run_completed(
            schema_name=target_schema,
            applied=len(applied),
            skipped=len(skipped),
        )
        return MigrationRunResult(
            schema_name=target_schema,
            applied=tuple(applied),
            skipped=tuple(skipped),
        )

    def applied_migrations(self, schema_name: str) -> list[str]:
        """Names of scripts recorded as applied to ``schema_name``, in order."""
        validate_schema_name(schema_name)
        with self._pool.connection() as conn:
            self._log.ensure_log(conn)
            records = self._log.list_records(conn, schema_name)
            conn.commit()
        return [record.migration_file for record in records]

    def _apply_script(
        self,
        conn: Connection,
        schema_name: str,
        kind: SchemaKind,
        script: MigrationScript,
    ) -> None:
        sql = render_script(script.sql, schema_name)
        started = time.perf_counter()
        try:
            self._executor(conn, sql)
            execution_time_ms = int((time.perf_counter() - started) * 1000)
            self._log.record(
                conn,
                schema_name=schema_name,
                script_name=script.name,
                kind=kind,
                execution_time_ms=execution_time_ms,
            )
            conn.commit()
        except Exception as e:
            conn.rollback()
            self._probe.script_failed(
                schema_name=schema_name,
                script_name=script.name,
                error=e,
            )
            raise MigrationFailureError(
                script_name=script.name,
                schema_name=schema_name,
                cause=e,
            ) from e

        self._probe.script_applied(
            schema_name=schema_name,
            script_name=script.name,
            execution_time_ms=execution_time_ms,
        )
