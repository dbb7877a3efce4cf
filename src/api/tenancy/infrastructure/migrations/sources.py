"""Migration script discovery.

Scripts are named ``NNN_description.sql``. Execution order is the lexical
order of file names, so every version prefix in a set must have the same
width. Shipped scripts are never renumbered or deleted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from shared_kernel.identifiers import quote_schema_name
from tenancy.domain.exceptions import (
    DuplicateMigrationVersionError,
    InvalidMigrationNameError,
)
from tenancy.domain.value_objects import SchemaKind
from tenancy.ports.migrations import MigrationScript

MIGRATION_NAME_PATTERN = re.compile(r"^(?P<version>\d{3,})_[a-z0-9_]+\.sql$")

SCHEMA_PLACEHOLDER = "{{schema}}"


def render_script(sql: str, schema_name: str) -> str:
    """Replace the ``{{schema}}`` placeholder with the quoted schema name."""
    if SCHEMA_PLACEHOLDER not in sql:
        return sql
    return sql.replace(SCHEMA_PLACEHOLDER, quote_schema_name(schema_name))


def check_script_names(names: Iterable[str]) -> list[str]:
    """Validate a set of script names and return them in execution order.

    Raises:
        InvalidMigrationNameError: If a name does not match
            ``NNN_description.sql`` or version prefixes differ in width.
        DuplicateMigrationVersionError: If two names share a version prefix.
    """
    ordered = sorted(names)
    versions: dict[str, str] = {}
    width: int | None = None

    for name in ordered:
        match = MIGRATION_NAME_PATTERN.fullmatch(name)
        if match is None:
            raise InvalidMigrationNameError(
                f"Migration '{name}' does not match NNN_description.sql"
            )

        version = match["version"]
        if width is None:
            width = len(version)
        elif len(version) != width:
            raise InvalidMigrationNameError(
                f"Migration '{name}' uses a {len(version)}-digit version; "
                f"this set uses {width} digits"
            )

        if version in versions:
            raise DuplicateMigrationVersionError(
                f"Migrations '{versions[version]}' and '{name}' share version {version}"
            )
        versions[version] = name

    return ordered


class DirectoryScriptSource:
    """Scripts read from ``*.sql`` files in one directory.

    A directory that does not exist yields no scripts.
    """

    def __init__(self, directory: Path, kind: SchemaKind):
        self._directory = Path(directory)
        self._kind = kind

    @property
    def kind(self) -> SchemaKind:
        return self._kind

    @property
    def directory(self) -> Path:
        return self._directory

    def scripts(self) -> list[MigrationScript]:
        """Read every script in execution order.

        Raises:
            InvalidMigrationNameError: On a misnamed ``.sql`` file.
            DuplicateMigrationVersionError: On a repeated version prefix.
        """
        if not self._directory.is_dir():
            return []

        names = check_script_names(
            path.name
            for path in self._directory.iterdir()
            if path.is_file() and path.suffix == ".sql"
        )
        return [
            MigrationScript(
                name=name,
                sql=(self._directory / name).read_text(encoding="utf-8"),
            )
            for name in names
        ]


class InMemoryScriptSource:
    """Scripts supplied directly, e.g. by tooling that generates them."""

    def __init__(self, kind: SchemaKind, scripts: Iterable[MigrationScript]):
        self._kind = kind
        self._scripts = list(scripts)
        by_name = {script.name: script for script in self._scripts}
        self._ordered = [by_name[name] for name in check_script_names(by_name)]

    @property
    def kind(self) -> SchemaKind:
        return self._kind

    def scripts(self) -> list[MigrationScript]:
        return list(self._ordered)
