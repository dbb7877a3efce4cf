"""Audit capability shared across bounded contexts.

Components that produce audit-worthy events receive an ``AuditSink``
through their constructor instead of calling a global logger, so the sink
can be replaced or disabled without touching their logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

import structlog


class AuditAction(StrEnum):
    """Actions recorded in the audit trail."""

    TENANT_CREATED = "tenant.created"
    TENANT_STATUS_CHANGED = "tenant.status_changed"
    PROVISIONING_STARTED = "tenant.provisioning_started"
    PROVISIONING_COMPLETED = "tenant.provisioning_completed"
    PROVISIONING_FAILED = "tenant.provisioning_failed"
    SUPERUSER_TENANT_ACCESS = "tenant.superuser_access"
    TENANT_HINT_OVERRIDDEN = "tenant.hint_overridden"


@dataclass(frozen=True)
class AuditEvent:
    """One entry in the audit trail.

    Attributes:
        action: What happened
        tenant_id: Tenant the action concerns, if any
        actor_id: Principal that caused it, or None for system actions
        details: Additional structured data
        occurred_at: When it happened (UTC)
    """

    action: AuditAction
    tenant_id: str | None = None
    actor_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit events."""

    def record(self, event: AuditEvent) -> None:
        """Record an audit event."""
        ...


class StructlogAuditSink:
    """Writes audit events to a dedicated structlog logger."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None):
        self._logger = logger or structlog.get_logger("audit")

    def record(self, event: AuditEvent) -> None:
        self._logger.info(
            "audit_event",
            action=str(event.action),
            tenant_id=event.tenant_id,
            actor_id=event.actor_id,
            occurred_at=event.occurred_at.isoformat(),
            **event.details,
        )


class NullAuditSink:
    """Discards audit events."""

    def record(self, event: AuditEvent) -> None:
        pass
