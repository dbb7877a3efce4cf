"""Domain aggregates for the tenancy context."""

from tenancy.domain.aggregates.tenant import PreparationState, Tenant

__all__ = [
    "PreparationState",
    "Tenant",
]
