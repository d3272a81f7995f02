# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant registry model.

One row per tenant organization. The subdomain is the routing key presented
by callers; the database_url points at the tenant's dedicated database and is
written once at provisioning time.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from omsms.infrastructure.database.models.base import Base, utc_now


class TenantStatus(str, Enum):
    """Lifecycle status of a tenant. Only ACTIVE tenants are routable."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Tenant(Base):
    """Tenant registry entry."""

    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="valid_tenant_status",
        ),
        Index("idx_tenants_status", "status"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    database_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TenantStatus.ACTIVE.value,
        server_default=TenantStatus.ACTIVE.value,
    )
    subscription_tier: Mapped[str] = mapped_column(
        String(50), nullable=False, default="starter", server_default="starter"
    )
    features: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.subdomain} ({self.status})>"
