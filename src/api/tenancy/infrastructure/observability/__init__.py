"""Domain-Oriented Observability for tenancy infrastructure.

Probes for registry and migration operations following Domain-Oriented
Observability patterns.
"""

from tenancy.infrastructure.observability.migration_probe import (
    DefaultMigrationProbe,
    MigrationProbe,
)
from tenancy.infrastructure.observability.registry_probe import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)

__all__ = [
    "DefaultMigrationProbe",
    "DefaultTenantRegistryProbe",
    "MigrationProbe",
    "TenantRegistryProbe",
]
