# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database gateway.

This package routes each request to the dedicated PostgreSQL database of its
tenant and manages the lifecycle of those databases:
- Master database: Tenant registry (subdomain, database URL, status)
- Tenant databases: One physical database per tenant, created on signup

Example:
    from omsms.infrastructure.database import TenantDatabaseManager

    manager = TenantDatabaseManager(settings)

    engine = await manager.get_connection("acme")
    async with manager.get_session("acme") as session:
        result = await session.execute(text("SELECT 1"))
"""

from omsms.infrastructure.database.connection import (
    MasterDatabaseError,
    create_master_engine,
    create_master_sessionmaker,
)
from omsms.infrastructure.database.exceptions import (
    TenantAlreadyExistsError,
    TenantConnectionError,
    TenantGatewayError,
    TenantNotFoundError,
    TenantProvisioningError,
    TenantSuspendedError,
)
from omsms.infrastructure.database.health import DatabaseHealth, HealthReporter
from omsms.infrastructure.database.provisioner import SchemaProvisioner
from omsms.infrastructure.database.registry import TenantRecord, TenantRegistry
from omsms.infrastructure.database.router import TenantConnectionRouter
from omsms.infrastructure.database.tenant_manager import TenantDatabaseManager

__all__ = [
    # Master database
    "MasterDatabaseError",
    "create_master_engine",
    "create_master_sessionmaker",
    # Gateway components
    "DatabaseHealth",
    "HealthReporter",
    "SchemaProvisioner",
    "TenantConnectionRouter",
    "TenantDatabaseManager",
    "TenantRecord",
    "TenantRegistry",
    # Errors
    "TenantAlreadyExistsError",
    "TenantConnectionError",
    "TenantGatewayError",
    "TenantNotFoundError",
    "TenantProvisioningError",
    "TenantSuspendedError",
]
