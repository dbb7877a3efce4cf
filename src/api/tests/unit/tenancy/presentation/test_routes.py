"""Unit tests for tenancy HTTP routes.

Services are mocked through FastAPI dependency overrides; the exception
handlers are installed as the application installs them.
"""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import MagicMock, Mock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from sqlalchemy.engine import Connection

from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import (
    PreparationTracker,
    SchemaProvisioner,
    TenantResolver,
    TenantService,
)
from tenancy.application.value_objects import Principal, PreparationReport
from tenancy.domain.aggregates import PreparationState, Tenant
from tenancy.domain.exceptions import (
    ConflictError,
    InvalidPreparationTransitionError,
    MigrationFailureError,
    TenantNotFoundError,
    TenantNotReadyError,
)
from tenancy.domain.value_objects import PreparationStatus, TenantId, TenantStatus

SUPERUSER = Principal(user_id="root-1", role="superadmin")


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(
        id=TenantId.generate(),
        name="Acme Academy",
        schema_name="tenant_acme_academy",
        domain="acme",
    )


@pytest.fixture
def mock_resolver() -> Mock:
    resolver = Mock(spec=TenantResolver)
    resolver.is_superuser.side_effect = (
        lambda p: p is not None and p.role == "superadmin"
    )
    return resolver


@pytest.fixture
def mock_provisioner() -> Mock:
    return Mock(spec=SchemaProvisioner)


@pytest.fixture
def mock_service() -> Mock:
    return Mock(spec=TenantService)


@pytest.fixture
def mock_tracker() -> Mock:
    return Mock(spec=PreparationTracker)


@pytest.fixture
def principal() -> dict:
    """Mutable holder so a test can switch the calling principal."""
    return {"value": SUPERUSER}


@pytest.fixture
def app(mock_resolver, mock_provisioner, mock_service, mock_tracker, principal):
    from tenancy.dependencies import (
        get_preparation_tracker,
        get_principal,
        get_schema_provisioner,
        get_tenant_resolver,
        get_tenant_service,
    )
    from tenancy.presentation import (
        context_router,
        register_exception_handlers,
        router,
    )

    app = FastAPI()
    app.dependency_overrides[get_principal] = lambda: principal["value"]
    app.dependency_overrides[get_tenant_resolver] = lambda: mock_resolver
    app.dependency_overrides[get_schema_provisioner] = lambda: mock_provisioner
    app.dependency_overrides[get_tenant_service] = lambda: mock_service
    app.dependency_overrides[get_preparation_tracker] = lambda: mock_tracker
    register_exception_handlers(app)
    app.include_router(router)
    app.include_router(context_router)
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestCreateTenant:
    """Tests for POST /tenants."""

    def test_creates_and_provisions_in_background(
        self, client, mock_provisioner, tenant
    ):
        mock_provisioner.create_tenant.return_value = tenant

        response = client.post(
            "/tenants", json={"name": "Acme Academy", "domain": "acme"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["id"] == tenant.id.value
        assert body["schema_name"] == "tenant_acme_academy"
        assert body["preparation_status"] == "pending"
        mock_provisioner.create_tenant.assert_called_once_with(
            name="Acme Academy",
            desired_schema_name=None,
            domain="acme",
            subscription={},
            actor_id="root-1",
        )
        mock_provisioner.provision_in_background.assert_called_once_with(
            tenant, "root-1"
        )
        mock_provisioner.provision_tenant_schema.assert_not_called()

    def test_wait_provisions_before_responding(
        self, client, mock_provisioner, tenant
    ):
        ready = Tenant(
            id=tenant.id,
            name=tenant.name,
            schema_name=tenant.schema_name,
            preparation=PreparationState(status=PreparationStatus.READY),
        )
        mock_provisioner.create_tenant.return_value = tenant
        mock_provisioner.provision_tenant_schema.return_value = ready

        response = client.post("/tenants", json={"name": "Acme Academy", "wait": True})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["preparation_status"] == "ready"
        mock_provisioner.provision_in_background.assert_not_called()

    def test_inline_migration_failure_names_script_only(
        self, client, mock_provisioner, tenant
    ):
        mock_provisioner.create_tenant.return_value = tenant
        mock_provisioner.provision_tenant_schema.side_effect = MigrationFailureError(
            script_name="003_create_classes.sql",
            schema_name="tenant_acme_academy",
            cause=Exception('relation "people" does not exist'),
        )

        response = client.post("/tenants", json={"name": "Acme Academy", "wait": True})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"detail": "Migration 003_create_classes.sql failed"}
        assert "tenant_acme_academy" not in response.text

    def test_duplicate_schema_name_is_409(self, client, mock_provisioner):
        mock_provisioner.create_tenant.side_effect = ConflictError(
            "tenant_acme_academy"
        )

        response = client.post("/tenants", json={"name": "Acme Academy"})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "tenant_acme_academy" not in response.text

    def test_requires_superuser(self, client, principal, mock_provisioner):
        principal["value"] = Principal(user_id="t-1", role="admin", tenant_id="x")

        response = client.post("/tenants", json={"name": "Acme Academy"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        mock_provisioner.create_tenant.assert_not_called()

    def test_requires_authentication(self, client, principal):
        principal["value"] = None

        response = client.post("/tenants", json={"name": "Acme Academy"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_empty_name_rejected(self, client):
        response = client.post("/tenants", json={"name": ""})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestTenantAdministration:
    def test_list_tenants(self, client, mock_service, tenant):
        mock_service.list_tenants.return_value = [tenant]

        response = client.get("/tenants", params={"active_only": "true"})

        assert response.status_code == status.HTTP_200_OK
        assert [t["id"] for t in response.json()] == [tenant.id.value]
        mock_service.list_tenants.assert_called_once_with(active_only=True)

    def test_get_tenant(self, client, mock_service, tenant):
        mock_service.get_tenant.return_value = tenant

        response = client.get(f"/tenants/{tenant.id.value}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Acme Academy"

    def test_get_tenant_invalid_id(self, client, mock_service):
        response = client.get("/tenants/not-a-ulid")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_service.get_tenant.assert_not_called()

    def test_get_unknown_tenant(self, client, mock_service):
        mock_service.get_tenant.side_effect = TenantNotFoundError("missing")

        response = client.get(f"/tenants/{TenantId.generate().value}")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_suspend_tenant(self, client, mock_service, tenant):
        tenant.status = TenantStatus.SUSPENDED
        mock_service.change_status.return_value = tenant

        response = client.patch(
            f"/tenants/{tenant.id.value}/status", json={"status": "suspended"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "suspended"
        mock_service.change_status.assert_called_once_with(
            tenant.id, status=TenantStatus.SUSPENDED, actor_id="root-1"
        )


class TestPreparationStatus:
    """Tests for GET /tenants/{id}/preparation."""

    def test_superuser_sees_any_tenant(self, client, mock_tracker, tenant):
        mock_tracker.get_status.return_value = PreparationReport(
            tenant_id=tenant.id.value,
            status=PreparationStatus.FAILED,
            error="Migration 002_create_people.sql failed",
        )

        response = client.get(f"/tenants/{tenant.id.value}/preparation")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "failed"
        assert response.json()["error"] == "Migration 002_create_people.sql failed"

    def test_own_tenant_principal_allowed(
        self, client, principal, mock_tracker, tenant
    ):
        principal["value"] = Principal(
            user_id="t-1", role="admin", tenant_id=tenant.id.value.lower()
        )
        mock_tracker.get_status.return_value = PreparationReport(
            tenant_id=tenant.id.value, status=PreparationStatus.PREPARING
        )

        response = client.get(f"/tenants/{tenant.id.value}/preparation")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "preparing"

    def test_other_tenant_principal_gets_404(
        self, client, principal, mock_tracker, tenant
    ):
        principal["value"] = Principal(
            user_id="t-1", role="admin", tenant_id=TenantId.generate().value
        )

        response = client.get(f"/tenants/{tenant.id.value}/preparation")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        mock_tracker.get_status.assert_not_called()

    def test_retry(self, client, mock_provisioner, tenant):
        tenant.preparation = PreparationState(status=PreparationStatus.READY)
        mock_provisioner.retry_provisioning.return_value = tenant

        response = client.post(f"/tenants/{tenant.id.value}/preparation/retry")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ready"
        mock_provisioner.retry_provisioning.assert_called_once_with(
            tenant.id, actor_id="root-1"
        )

    def test_retry_while_preparing_is_409(self, client, mock_provisioner, tenant):
        mock_provisioner.retry_provisioning.side_effect = (
            InvalidPreparationTransitionError(
                tenant_id=tenant.id.value, current="preparing", target="preparing"
            )
        )

        response = client.post(f"/tenants/{tenant.id.value}/preparation/retry")

        assert response.status_code == status.HTTP_409_CONFLICT


class TestTenantContextRoute:
    """Tests for GET /tenant/context."""

    def test_reports_resolved_tenant_and_schema(self, app, client, tenant):
        from tenancy.dependencies import get_tenant_context

        conn = MagicMock(spec=Connection)
        conn.execute.return_value.scalar_one.return_value = "tenant_acme_academy"
        app.dependency_overrides[get_tenant_context] = lambda: TenantContext(
            tenant_id=tenant.id.value,
            schema_name=tenant.schema_name,
            source="header",
            connection=conn,
        )

        response = client.get("/tenant/context")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "tenant_id": tenant.id.value,
            "source": "header",
            "current_schema": "tenant_acme_academy",
        }

    def test_unready_tenant_is_503(self, client, mock_resolver, tenant):
        @contextmanager
        def not_ready(principal, hints, required):
            raise TenantNotReadyError(tenant.id.value, "preparing")
            yield

        mock_resolver.tenant_context.side_effect = not_ready

        response = client.get("/tenant/context", headers={"X-Tenant-ID": "x"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["preparation_status"] == "preparing"

    def test_hints_passed_to_resolver(self, client, mock_resolver, tenant):
        @contextmanager
        def missing(principal, hints, required):
            raise TenantNotFoundError("Tenant not found")
            yield

        mock_resolver.tenant_context.side_effect = missing

        response = client.get(
            "/tenant/context", headers={"X-Tenant-ID": " tenant_acme_academy "}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        principal, hints = mock_resolver.tenant_context.call_args.args
        assert principal == SUPERUSER
        assert hints.header == "tenant_acme_academy"
        assert mock_resolver.tenant_context.call_args.kwargs == {"required": True}
