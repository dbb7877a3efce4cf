"""Shared middleware for cross-cutting concerns.

This module contains request-scoped value objects shared across bounded
contexts. ``TenantContext`` is the primary component: the resolved tenant
plus the connection scoped to its schema.
"""
