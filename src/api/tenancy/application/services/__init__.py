"""Application services for the tenancy bounded context.

Application services orchestrate the domain, the shared registry and the
migration engine to fulfil use cases. They are the "front door" to the
tenancy context.
"""

from tenancy.application.services.preparation_tracker import PreparationTracker
from tenancy.application.services.schema_provisioner import SchemaProvisioner
from tenancy.application.services.tenant_resolver import TenantResolver
from tenancy.application.services.tenant_service import TenantService

__all__ = [
    "PreparationTracker",
    "SchemaProvisioner",
    "TenantResolver",
    "TenantService",
]
