"""Migration ports: scripts, where they come from, and the applied log."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tenancy.domain.value_objects import SchemaKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection


@dataclass(frozen=True)
class MigrationScript:
    """One named migration script.

    Attributes:
        name: File name, e.g. ``003_create_students.sql``. Lexical order of
            names is execution order.
        sql: Script text, possibly containing a ``{{schema}}`` placeholder
    """

    name: str
    sql: str


@dataclass(frozen=True)
class MigrationRecord:
    """A script recorded as applied to a schema."""

    schema_name: str
    migration_file: str
    schema_kind: SchemaKind
    applied_at: datetime
    execution_time_ms: int | None = None


@runtime_checkable
class ScriptSource(Protocol):
    """An ordered collection of migration scripts for one schema kind."""

    @property
    def kind(self) -> SchemaKind:
        """Which schema kind these scripts evolve."""
        ...

    def scripts(self) -> Iterable[MigrationScript]:
        """Yield scripts in execution order."""
        ...


@runtime_checkable
class IMigrationLog(Protocol):
    """Durable record of which scripts have been applied to which schema.

    Every method works on a connection supplied by the caller, so a script
    and its log entry share one transaction.
    """

    def ensure_log(self, conn: Connection) -> None:
        """Create the log table if it does not exist."""
        ...

    def applied_scripts(self, conn: Connection, schema_name: str) -> set[str]:
        """Names of scripts already applied to ``schema_name``."""
        ...

    def record(
        self,
        conn: Connection,
        schema_name: str,
        script_name: str,
        kind: SchemaKind,
        execution_time_ms: int,
    ) -> None:
        """Record a script as applied. Does not commit."""
        ...

    def list_records(self, conn: Connection, schema_name: str) -> list[MigrationRecord]:
        """Applied records for ``schema_name``, in script order."""
        ...


@dataclass(frozen=True)
class MigrationRunResult:
    """Outcome of one migration run against one schema.

    Attributes:
        schema_name: Schema the scripts were applied to
        applied: Scripts executed by this run, in order
        skipped: Scripts the log already recorded
    """

    schema_name: str
    applied: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()


@runtime_checkable
class SchemaMigrator(Protocol):
    """Brings one schema up to date with a script set."""

    def apply_migrations(
        self,
        target_schema: str,
        source: ScriptSource,
    ) -> MigrationRunResult:
        """Apply every script from ``source`` not yet applied to ``target_schema``.

        Raises:
            MigrationFailureError: Naming the first script that failed.
        """
        ...
