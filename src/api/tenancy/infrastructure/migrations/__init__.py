"""Versioned SQL migrations for the shared schema and tenant schemas.

Scripts ship in ``sql/shared`` and ``sql/tenant`` beside this package.
"""

from pathlib import Path

from tenancy.infrastructure.migrations.engine import (
    MigrationEngine,
    MigrationRunResult,
    execute_script,
)
from tenancy.infrastructure.migrations.sources import (
    DirectoryScriptSource,
    InMemoryScriptSource,
    render_script,
)

SQL_ROOT = Path(__file__).parent / "sql"

__all__ = [
    "DirectoryScriptSource",
    "InMemoryScriptSource",
    "MigrationEngine",
    "MigrationRunResult",
    "SQL_ROOT",
    "execute_script",
    "render_script",
]
