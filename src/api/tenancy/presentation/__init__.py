"""Tenancy presentation layer.

``router`` holds tenant administration and preparation status endpoints.
``context_router`` holds endpoints that run inside a resolved tenant
context.
"""

from __future__ import annotations

from tenancy.presentation.errors import register_exception_handlers
from tenancy.presentation.routes import context_router, router

__all__ = ["context_router", "register_exception_handlers", "router"]
