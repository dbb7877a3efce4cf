"""Unit tests for PreparationTracker."""

from unittest.mock import Mock

import pytest

from tenancy.application.observability import PreparationTrackerProbe
from tenancy.application.services import PreparationTracker
from tenancy.domain.aggregates import PreparationState, Tenant
from tenancy.domain.exceptions import (
    InvalidPreparationTransitionError,
    TenantNotFoundError,
)
from tenancy.domain.value_objects import PreparationStatus, TenantId
from tenancy.ports.repositories import ITenantRegistry


def make_tenant(status: PreparationStatus = PreparationStatus.PENDING, **kwargs):
    return Tenant(
        id=TenantId.generate(),
        name="Acme Academy",
        schema_name="tenant_acme_academy",
        preparation=PreparationState(status=status, **kwargs),
    )


@pytest.fixture
def mock_registry():
    """Mock tenant registry."""
    return Mock(spec=ITenantRegistry)


@pytest.fixture
def mock_probe():
    return Mock(spec=PreparationTrackerProbe)


@pytest.fixture
def tracker(mock_registry, mock_probe):
    return PreparationTracker(registry=mock_registry, probe=mock_probe)


class TestTransitions:
    """Each transition is one guarded registry update."""

    def test_start_moves_to_preparing(self, tracker, mock_registry, mock_probe):
        tenant = make_tenant(PreparationStatus.PREPARING)
        mock_registry.update_status.return_value = tenant

        result = tracker.start(tenant.id)

        assert result is tenant
        mock_registry.update_status.assert_called_once_with(
            tenant.id,
            preparation_status=PreparationStatus.PREPARING,
            error=None,
        )
        mock_probe.preparation_transitioned.assert_called_once_with(
            tenant_id=tenant.id.value, status="preparing"
        )

    def test_complete_moves_to_ready(self, tracker, mock_registry):
        tenant = make_tenant(PreparationStatus.READY)
        mock_registry.update_status.return_value = tenant

        tracker.complete(tenant.id)

        mock_registry.update_status.assert_called_once_with(
            tenant.id,
            preparation_status=PreparationStatus.READY,
            error=None,
        )

    def test_fail_keeps_error(self, tracker, mock_registry):
        tenant = make_tenant(PreparationStatus.FAILED)
        mock_registry.update_status.return_value = tenant

        tracker.fail(tenant.id, "Migration 003_create_classes.sql failed")

        mock_registry.update_status.assert_called_once_with(
            tenant.id,
            preparation_status=PreparationStatus.FAILED,
            error="Migration 003_create_classes.sql failed",
        )

    def test_losing_start_propagates_rejection(self, tracker, mock_registry, mock_probe):
        """A second start for a tenant already preparing loses."""
        tenant_id = TenantId.generate()
        mock_registry.update_status.side_effect = InvalidPreparationTransitionError(
            tenant_id=tenant_id.value, current="preparing", target="preparing"
        )

        with pytest.raises(InvalidPreparationTransitionError):
            tracker.start(tenant_id)

        mock_probe.preparation_transitioned.assert_not_called()

    def test_unknown_tenant_propagates_not_found(self, tracker, mock_registry):
        mock_registry.update_status.side_effect = TenantNotFoundError("nope")

        with pytest.raises(TenantNotFoundError):
            tracker.complete(TenantId.generate())


class TestGetStatus:
    """Tests for get_status()."""

    def test_reports_status_and_error(self, tracker, mock_registry, mock_probe):
        tenant = make_tenant(
            PreparationStatus.FAILED, error="Migration 002_create_people.sql failed"
        )
        mock_registry.get_tenant_by_id.return_value = tenant

        report = tracker.get_status(tenant.id)

        assert report.tenant_id == tenant.id.value
        assert report.status == PreparationStatus.FAILED
        assert report.error == "Migration 002_create_people.sql failed"
        mock_probe.preparation_status_checked.assert_called_once_with(
            tenant_id=tenant.id.value, status="failed"
        )

    def test_unknown_tenant_raises(self, tracker, mock_registry):
        mock_registry.get_tenant_by_id.return_value = None

        with pytest.raises(TenantNotFoundError):
            tracker.get_status(TenantId.generate())

    def test_default_probe(self, mock_registry):
        assert PreparationTracker(registry=mock_registry)._probe is not None
