"""Script transform for the in-memory test database.

SQLite cannot run PostgreSQL ``DO $$ ... $$;`` blocks. The test harness
wraps its script source in ``StrippedScriptSource`` so those blocks are
replaced with a comment before execution. Nothing on the provisioning or
startup path imports this module; scripts run against PostgreSQL exactly
as shipped.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from tenancy.domain.value_objects import SchemaKind
from tenancy.ports.migrations import MigrationScript, ScriptSource

PROCEDURAL_BLOCK_PATTERN = re.compile(r"\bDO\s+\$\$[\s\S]*?\$\$\s*;", re.IGNORECASE)

PROCEDURAL_BLOCK_MARKER = "-- procedural block removed"


def strip_procedural_blocks(sql: str) -> str:
    """Replace every ``DO $$ ... $$;`` block in ``sql`` with a comment."""
    return PROCEDURAL_BLOCK_PATTERN.sub(PROCEDURAL_BLOCK_MARKER, sql)


class StrippedScriptSource:
    """Wraps a script source, removing procedural blocks from each script."""

    def __init__(self, source: ScriptSource):
        self._source = source

    @property
    def kind(self) -> SchemaKind:
        return self._source.kind

    def scripts(self) -> Iterator[MigrationScript]:
        for script in self._source.scripts():
            yield MigrationScript(
                name=script.name,
                sql=strip_procedural_blocks(script.sql),
            )
