"""Unit tests for the tenancy domain probes."""

from unittest.mock import MagicMock

from shared_kernel.middleware.observability import DefaultTenantContextProbe
from shared_kernel.observability_context import ObservationContext
from tenancy.application.observability import (
    DefaultPreparationTrackerProbe,
    DefaultProvisioningProbe,
    DefaultTenantServiceProbe,
)
from tenancy.infrastructure.observability import (
    DefaultMigrationProbe,
    DefaultTenantRegistryProbe,
)


class TestMigrationProbe:
    def test_script_failed_logs_error_with_type(self):
        logger = MagicMock()
        probe = DefaultMigrationProbe(logger=logger)

        probe.script_failed(
            schema_name="tenant_acme",
            script_name="002_create_people.sql",
            error=RuntimeError("relation missing"),
        )

        logger.error.assert_called_once_with(
            "migration_failed",
            schema_name="tenant_acme",
            script_name="002_create_people.sql",
            error="relation missing",
            error_type="RuntimeError",
        )

    def test_run_completed_includes_context(self):
        logger = MagicMock()
        probe = DefaultMigrationProbe(logger=logger).with_context(
            ObservationContext(request_id="req-1")
        )

        probe.run_completed(schema_name="shared", applied=2, skipped=0)

        logger.info.assert_called_once_with(
            "migration_run_completed",
            schema_name="shared",
            applied=2,
            skipped=0,
            request_id="req-1",
        )


class TestProvisioningProbe:
    def test_failure_not_recorded_is_critical(self):
        logger = MagicMock()

        DefaultProvisioningProbe(logger=logger).failure_not_recorded(
            tenant_id="01H", error=ConnectionError("gone")
        )

        assert logger.critical.call_args.args == (
            "tenant_provisioning_failure_not_recorded",
        )

    def test_background_failure_omits_raw_message(self):
        logger = MagicMock()

        DefaultProvisioningProbe(logger=logger).background_provisioning_failed(
            tenant_id="01H", error=RuntimeError("password=secret")
        )

        kwargs = logger.error.call_args.kwargs
        assert kwargs == {"tenant_id": "01H", "error_type": "RuntimeError"}


class TestTenantContextProbe:
    def test_header_hint_ignored_is_warning(self):
        logger = MagicMock()

        DefaultTenantContextProbe(logger=logger).header_hint_ignored(
            claimed_tenant_id="01A", header_value="01B", user_id="u-1"
        )

        logger.warning.assert_called_once_with(
            "tenant_header_hint_ignored",
            claimed_tenant_id="01A",
            header_value="01B",
            user_id="u-1",
        )


def test_default_probes_create_loggers():
    for probe_class in (
        DefaultMigrationProbe,
        DefaultTenantRegistryProbe,
        DefaultProvisioningProbe,
        DefaultPreparationTrackerProbe,
        DefaultTenantServiceProbe,
        DefaultTenantContextProbe,
    ):
        probe = probe_class()
        assert probe._logger is not None
        assert isinstance(probe.with_context(ObservationContext()), probe_class)
