"""Domain-Oriented Observability for tenancy application services."""

from tenancy.application.observability.preparation_tracker_probe import (
    DefaultPreparationTrackerProbe,
    PreparationTrackerProbe,
)
from tenancy.application.observability.provisioning_probe import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.application.observability.tenant_service_probe import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)

__all__ = [
    "DefaultPreparationTrackerProbe",
    "DefaultProvisioningProbe",
    "DefaultTenantServiceProbe",
    "PreparationTrackerProbe",
    "ProvisioningProbe",
    "TenantServiceProbe",
]
