"""SQLAlchemy ORM models for the shared registry schema.

``shared.tenants`` is created and evolved by the shared migration scripts;
this mapping must stay in step with them. ``shared.schema_migrations`` is
the migration log itself, so it is created from this mapping before any
script runs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import (
    SHARED_SCHEMA,
    Base,
    TimestampMixin,
    utc_now,
)


class TenantModel(Base, TimestampMixin):
    """ORM model for the shared.tenants registry table.

    Note: schema_name is unique and never updated after insert.
    """

    __tablename__ = "tenants"
    __table_args__ = {"schema": SHARED_SCHEMA}

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    schema_name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    domain: Mapped[str | None] = mapped_column(String(63), nullable=True, unique=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    preparation_status: Mapped[str] = mapped_column(String(16), nullable=False)
    preparation_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    preparation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    preparation_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<TenantModel(id={self.id}, schema_name={self.schema_name}, "
            f"status={self.status}, preparation_status={self.preparation_status})>"
        )


class SchemaMigrationModel(Base):
    """ORM model for the shared.schema_migrations applied log.

    One row per script per schema. Shared and tenant schemas share the
    table; ``schema_kind`` records which script set the row belongs to.
    """

    __tablename__ = "schema_migrations"
    __table_args__ = {"schema": SHARED_SCHEMA}

    schema_name: Mapped[str] = mapped_column(String(63), primary_key=True)
    migration_file: Mapped[str] = mapped_column(String(255), primary_key=True)
    schema_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utc_now,
        nullable=False,
    )
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<SchemaMigrationModel(schema_name={self.schema_name}, "
            f"migration_file={self.migration_file})>"
        )
