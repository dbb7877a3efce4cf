"""Preparation state machine.

    pending --> preparing --> ready
                    |
                    v
                  failed --> preparing (retry)

``pending`` is only ever an initial state. ``ready`` is terminal.
"""

from __future__ import annotations

from tenancy.domain.exceptions import InvalidPreparationTransitionError
from tenancy.domain.value_objects import PreparationStatus

ALLOWED_SOURCES: dict[PreparationStatus, frozenset[PreparationStatus]] = {
    PreparationStatus.PREPARING: frozenset(
        {PreparationStatus.PENDING, PreparationStatus.FAILED}
    ),
    PreparationStatus.READY: frozenset({PreparationStatus.PREPARING}),
    PreparationStatus.FAILED: frozenset({PreparationStatus.PREPARING}),
}


def allowed_sources(target: PreparationStatus) -> frozenset[PreparationStatus]:
    """States from which ``target`` may be entered (empty for ``pending``)."""
    return ALLOWED_SOURCES.get(target, frozenset())


def can_transition(current: PreparationStatus, target: PreparationStatus) -> bool:
    """Whether moving from ``current`` to ``target`` is allowed."""
    return current in allowed_sources(target)


def ensure_transition(
    tenant_id: str,
    current: PreparationStatus,
    target: PreparationStatus,
) -> None:
    """Raise if moving from ``current`` to ``target`` is not allowed.

    Raises:
        InvalidPreparationTransitionError: For any move not in the diagram.
    """
    if not can_transition(current, target):
        raise InvalidPreparationTransitionError(
            tenant_id=tenant_id,
            current=str(current),
            target=str(target),
        )
