"""PostgreSQL implementation of ITenantRegistry.

Tenants live in ``shared.tenants``. Every call checks out its own
unscoped connection, so reads always see the latest committed state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from infrastructure.database.models import utc_now
from shared_kernel.identifiers import (
    InvalidSchemaNameError,
    derive_schema_name,
    is_reserved_schema_name,
    validate_schema_name,
)
from tenancy.domain.aggregates import PreparationState, Tenant
from tenancy.domain.exceptions import (
    ConflictError,
    InvalidPreparationTransitionError,
    TenantNotFoundError,
)
from tenancy.domain.preparation import allowed_sources
from tenancy.domain.value_objects import (
    PreparationStatus,
    TenantId,
    TenantStatus,
)
from tenancy.infrastructure.models import TenantModel
from tenancy.infrastructure.observability import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)
from tenancy.ports.repositories import ITenantRegistry

if TYPE_CHECKING:
    from infrastructure.database.connection_pool import ConnectionPool


class TenantRegistry(ITenantRegistry):
    """Shared registry of tenants backed by ``shared.tenants``."""

    def __init__(
        self,
        pool: ConnectionPool,
        schema_prefix: str = "tenant_",
        probe: TenantRegistryProbe | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            pool: Shared connection pool
            schema_prefix: Prefix for schema names derived from tenant names
            probe: Optional domain probe for observability
        """
        self._pool = pool
        self._schema_prefix = schema_prefix
        self._probe = probe or DefaultTenantRegistryProbe()

    def create_tenant(
        self,
        name: str,
        desired_schema_name: str | None = None,
        domain: str | None = None,
        subscription: dict[str, Any] | None = None,
    ) -> Tenant:
        """Register a new tenant with preparation pending.

        The schema name is derived from ``name`` unless given. Two tenants
        whose names slugify alike conflict; the second one has to supply a
        different name or an explicit schema name.

        Raises:
            ConflictError: If the schema name or domain is already taken
            InvalidSchemaNameError: If the schema name is invalid or reserved
        """
        if desired_schema_name is None:
            schema_name = derive_schema_name(name, prefix=self._schema_prefix)
        else:
            schema_name = validate_schema_name(desired_schema_name)
        if is_reserved_schema_name(schema_name):
            raise InvalidSchemaNameError(f"Schema name '{schema_name}' is reserved")

        if domain is not None:
            domain = domain.strip().lower()

        tenant = Tenant.create(
            name=name,
            schema_name=schema_name,
            domain=domain,
            subscription=subscription,
        )

        with self._pool.connection() as conn, Session(
            bind=conn, expire_on_commit=False
        ) as session:
            self._check_available(session, TenantModel.schema_name, schema_name)
            if domain is not None:
                self._check_available(session, TenantModel.domain, domain)

            model = TenantModel(
                id=tenant.id.value,
                name=tenant.name,
                schema_name=tenant.schema_name,
                domain=tenant.domain,
                status=tenant.status.value,
                preparation_status=tenant.preparation.status.value,
                subscription=tenant.subscription,
            )
            session.add(model)
            try:
                session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent registration
                session.rollback()
                if domain is not None and self._is_taken(
                    session, TenantModel.domain, domain
                ):
                    self._probe.schema_name_conflict(field="domain", value=domain)
                    raise ConflictError(domain, field="domain") from e
                self._probe.schema_name_conflict(
                    field="schema_name", value=schema_name
                )
                raise ConflictError(schema_name) from e

            self._probe.tenant_registered(
                tenant_id=model.id,
                schema_name=model.schema_name,
            )
            return self._to_domain(model)

    def get_tenant_by_id(self, tenant_id: TenantId) -> Tenant | None:
        return self._get_one(TenantModel.id == tenant_id.value)

    def get_tenant_by_schema_name(self, schema_name: str) -> Tenant | None:
        return self._get_one(TenantModel.schema_name == schema_name)

    def get_tenant_by_domain(self, domain: str) -> Tenant | None:
        return self._get_one(TenantModel.domain == domain.strip().lower())

    def list_tenants(self, active_only: bool = False) -> list[Tenant]:
        """List tenants ordered by name.

        Args:
            active_only: Only include tenants whose status is active
        """
        stmt = select(TenantModel).order_by(TenantModel.name, TenantModel.id)
        if active_only:
            stmt = stmt.where(TenantModel.status == TenantStatus.ACTIVE.value)

        with self._pool.connection() as conn, Session(bind=conn) as session:
            tenants = [self._to_domain(model) for model in session.scalars(stmt)]

        self._probe.tenants_listed(count=len(tenants), active_only=active_only)
        return tenants

    def update_status(
        self,
        tenant_id: TenantId,
        status: TenantStatus | None = None,
        preparation_status: PreparationStatus | None = None,
        error: str | None = None,
    ) -> Tenant:
        """Change a tenant's status and/or preparation status in one UPDATE.

        A preparation change carries its legal source states in the WHERE
        clause, so of two racing transitions out of the same state exactly
        one matches a row. Timestamps are stamped in the same statement:
        entering ``preparing`` sets started_at and clears completed_at and
        the error; entering ``ready`` or ``failed`` sets completed_at.

        Args:
            tenant_id: Tenant to update
            status: New lifecycle status
            preparation_status: New preparation status
            error: Failure message; only stored when entering ``failed``

        Returns:
            The tenant as stored after the update

        Raises:
            TenantNotFoundError: If no tenant has this ID
            InvalidPreparationTransitionError: If the preparation change is
                not allowed from the current state
            ValueError: If neither status nor preparation_status is given
        """
        if status is None and preparation_status is None:
            raise ValueError("update_status needs a status or a preparation_status")

        now = utc_now()
        values: dict[str, Any] = {"updated_at": now}
        conditions = [TenantModel.id == tenant_id.value]

        if status is not None:
            values["status"] = status.value

        if preparation_status is not None:
            sources = allowed_sources(preparation_status)
            if not sources:
                self._probe.transition_rejected(
                    tenant_id=tenant_id.value,
                    current=None,
                    target=preparation_status.value,
                )
                raise InvalidPreparationTransitionError(
                    tenant_id=tenant_id.value,
                    current=None,
                    target=preparation_status.value,
                )
            conditions.append(
                TenantModel.preparation_status.in_([s.value for s in sources])
            )
            values["preparation_status"] = preparation_status.value
            if preparation_status == PreparationStatus.PREPARING:
                values["preparation_started_at"] = now
                values["preparation_completed_at"] = None
                values["preparation_error"] = None
            elif preparation_status == PreparationStatus.READY:
                values["preparation_completed_at"] = now
                values["preparation_error"] = None
            else:
                values["preparation_completed_at"] = now
                values["preparation_error"] = error

        stmt = (
            update(TenantModel)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        with self._pool.connection() as conn, Session(
            bind=conn, expire_on_commit=False
        ) as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                session.rollback()
                current = session.scalar(
                    select(TenantModel.preparation_status).where(
                        TenantModel.id == tenant_id.value
                    )
                )
                if current is None or preparation_status is None:
                    raise TenantNotFoundError(f"Tenant {tenant_id.value} not found")
                self._probe.transition_rejected(
                    tenant_id=tenant_id.value,
                    current=current,
                    target=preparation_status.value,
                )
                raise InvalidPreparationTransitionError(
                    tenant_id=tenant_id.value,
                    current=current,
                    target=preparation_status.value,
                )
            session.commit()

            model = session.scalars(
                select(TenantModel).where(TenantModel.id == tenant_id.value)
            ).one()
            tenant = self._to_domain(model)

        self._probe.status_updated(
            tenant_id=tenant_id.value,
            status=status.value if status is not None else None,
            preparation_status=(
                preparation_status.value if preparation_status is not None else None
            ),
        )
        return tenant

    def _get_one(self, condition) -> Tenant | None:
        with self._pool.connection() as conn, Session(bind=conn) as session:
            model = session.scalars(select(TenantModel).where(condition)).one_or_none()
            if model is None:
                return None
            tenant = self._to_domain(model)

        self._probe.tenant_retrieved(tenant_id=tenant.id.value)
        return tenant

    def _check_available(self, session: Session, column, value: str) -> None:
        if self._is_taken(session, column, value):
            field = column.key
            self._probe.schema_name_conflict(field=field, value=value)
            raise ConflictError(value, field=field)

    @staticmethod
    def _is_taken(session: Session, column, value: str) -> bool:
        return session.scalar(select(TenantModel.id).where(column == value)) is not None

    @staticmethod
    def _to_domain(model: TenantModel) -> Tenant:
        return Tenant(
            id=TenantId(value=model.id),
            name=model.name,
            schema_name=model.schema_name,
            status=TenantStatus(model.status),
            preparation=PreparationState(
                status=PreparationStatus(model.preparation_status),
                error=model.preparation_error,
                started_at=model.preparation_started_at,
                completed_at=model.preparation_completed_at,
            ),
            domain=model.domain,
            subscription=dict(model.subscription or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
