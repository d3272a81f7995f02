# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Create the tenant registry table.

Revision ID: 001_create_tenants
Revises: None
Create Date: 2025-01-15
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_create_tenants"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ("master",)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the tenants table."""
    op.create_table(
        "tenants",
        sa.Column("tenant_id", sa.String(64), primary_key=True),
        sa.Column("tenant_name", sa.String(255), nullable=True),
        sa.Column("subdomain", sa.String(63), unique=True, nullable=False),
        sa.Column("database_url", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("subscription_tier", sa.String(50), nullable=False, server_default="starter"),
        sa.Column(
            "features",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="valid_tenant_status",
        ),
    )
    op.create_index("idx_tenants_status", "tenants", ["status"])


def downgrade() -> None:
    """Drop the tenants table."""
    op.drop_index("idx_tenants_status", table_name="tenants")
    op.drop_table("tenants")
