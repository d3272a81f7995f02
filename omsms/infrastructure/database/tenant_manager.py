# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database manager.

Single entry point of the tenant database gateway. Wires the tenant registry,
the connection router, the schema provisioner and the health reporter from
application settings, and exposes the operations the rest of the backend uses:

- Routing: get_connection(), get_session()
- Lifecycle: provision_tenant(), suspend_tenant(), deactivate_tenant(),
  activate_tenant(), deprovision_tenant()
- Operations: check_health(), close_all()

Example:
    manager = TenantDatabaseManager(get_settings())

    async with manager.get_session("acme") as session:
        result = await session.execute(text("SELECT count(*) FROM vehicles"))

    await manager.close_all()
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from omsms.infrastructure.database.connection import (
    create_master_engine,
    create_master_sessionmaker,
)
from omsms.infrastructure.database.exceptions import (
    TenantAlreadyExistsError,
    TenantGatewayError,
    TenantProvisioningError,
)
from omsms.infrastructure.database.health import DatabaseHealth, HealthReporter
from omsms.infrastructure.database.models.master.tenant import TenantStatus
from omsms.infrastructure.database.provisioner import SchemaProvisioner
from omsms.infrastructure.database.registry import (
    TenantRecord,
    TenantRegistry,
    normalize_subdomain,
)
from omsms.infrastructure.database.router import TenantConnectionRouter

if TYPE_CHECKING:
    from omsms.core.config.settings import Settings

logger = logging.getLogger(__name__)


class TenantDatabaseManager:
    """Manages routing to, and the lifecycle of, tenant databases.

    Components can be injected for testing; anything not injected is built
    from settings around a single master engine.

    Attributes:
        registry: Tenant registry client.
        router: Connection router owning all cached engines.
        provisioner: Tenant database provisioner.
        health: Health reporter.
    """

    def __init__(
        self,
        settings: "Settings",
        *,
        master_engine: Optional[AsyncEngine] = None,
        registry: Optional[TenantRegistry] = None,
        router: Optional[TenantConnectionRouter] = None,
        provisioner: Optional[SchemaProvisioner] = None,
        health: Optional[HealthReporter] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            settings: Application settings.
            master_engine: Master database engine (created from settings if omitted).
            registry: Tenant registry client.
            router: Connection router.
            provisioner: Schema provisioner.
            health: Health reporter.
        """
        self._settings = settings
        tenant_settings = settings.tenant_db

        if master_engine is None and router is not None:
            master_engine = router.master_engine
        elif master_engine is None:
            master_engine = create_master_engine(settings)

        self.registry = registry or TenantRegistry(
            create_master_sessionmaker(master_engine),
            lookup_timeout=tenant_settings.lookup_timeout,
        )
        self.router = router or TenantConnectionRouter(
            self.registry,
            master_engine,
            tenant_settings,
            debug=settings.debug,
        )
        self.provisioner = provisioner or SchemaProvisioner(master_engine, tenant_settings)
        self.health = health or HealthReporter(
            master_engine,
            self.router,
            probe_timeout=tenant_settings.probe_timeout,
        )

    # =========================================================================
    # ROUTING
    # =========================================================================

    async def get_connection(self, subdomain: str) -> AsyncEngine:
        """Get the database engine of an active tenant.

        Args:
            subdomain: Tenant routing key.

        Returns:
            AsyncEngine bound to the tenant's database.

        Raises:
            TenantNotFoundError: If no tenant matches the key.
            TenantSuspendedError: If the tenant is not active.
            TenantConnectionError: If the tenant database cannot be reached.
        """
        return await self.router.get_connection(subdomain)

    @asynccontextmanager
    async def get_session(self, subdomain: str) -> AsyncIterator[AsyncSession]:
        """Get an async session for a tenant database.

        The session is committed on success and rolled back on exception.

        Args:
            subdomain: Tenant routing key.

        Yields:
            AsyncSession for database operations.

        Raises:
            TenantGatewayError: If the tenant cannot be routed to.
            SQLAlchemyError: If a database operation fails.
        """
        engine = await self.get_connection(subdomain)

        async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def provision_tenant(
        self,
        tenant_id: str,
        subdomain: str,
        tenant_name: Optional[str] = None,
    ) -> TenantRecord:
        """Provision and register a new tenant.

        Args:
            tenant_id: Opaque tenant identifier.
            subdomain: Requested subdomain (routing key).
            tenant_name: Optional display name.

        Returns:
            The registered TenantRecord.

        Raises:
            ValueError: If the subdomain is invalid.
            TenantAlreadyExistsError: If the subdomain is already registered.
            TenantProvisioningError: If database creation or registration fails.
        """
        key = normalize_subdomain(subdomain)
        database_name = self.provisioner.database_name(key)

        if await self.registry.exists(key):
            raise TenantAlreadyExistsError(key)

        database_url = await self.provisioner.provision(tenant_id, key)

        try:
            record = await self.registry.register(
                tenant_id=tenant_id,
                subdomain=key,
                database_url=database_url,
                tenant_name=tenant_name,
            )
        except TenantGatewayError as e:
            logger.error("Failed to register provisioned tenant %s: %s", key, e)
            await self._drop_database_quietly(key)
            raise TenantProvisioningError(
                key,
                "tenant registration failed",
                database_name=database_name,
                cause=e,
            ) from e

        logger.info("Tenant %s provisioned (%s)", key, tenant_id)
        return record

    async def suspend_tenant(self, subdomain: str) -> TenantRecord:
        """Suspend a tenant and drop its cached connection."""
        return await self._change_status(subdomain, TenantStatus.SUSPENDED, evict=True)

    async def deactivate_tenant(self, subdomain: str) -> TenantRecord:
        """Deactivate a tenant and drop its cached connection."""
        return await self._change_status(subdomain, TenantStatus.INACTIVE, evict=True)

    async def activate_tenant(self, subdomain: str) -> TenantRecord:
        """Re-activate a suspended or inactive tenant."""
        return await self._change_status(subdomain, TenantStatus.ACTIVE, evict=False)

    async def deprovision_tenant(self, subdomain: str) -> None:
        """Deactivate a tenant and drop its database.

        The registry record is kept with status inactive.

        Args:
            subdomain: Tenant routing key.

        Raises:
            TenantNotFoundError: If no tenant matches the key.
            SQLAlchemyError: If the database cannot be dropped.
        """
        key = normalize_subdomain(subdomain)
        await self.deactivate_tenant(key)
        await self.provisioner.drop_database(key)
        logger.info("Tenant %s deprovisioned", key)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def check_health(self) -> DatabaseHealth:
        """Probe the master database and every cached tenant database."""
        return await self.health.check_health()

    async def close_all(self) -> None:
        """Close every database connection. Intended for process shutdown."""
        await self.router.close_all()

    async def _change_status(
        self,
        subdomain: str,
        status: TenantStatus,
        evict: bool,
    ) -> TenantRecord:
        key = normalize_subdomain(subdomain)
        record = await self.registry.set_status(key, status.value)
        if evict:
            await self.router.evict(key)
        return record

    async def _drop_database_quietly(self, subdomain: str) -> None:
        try:
            await self.provisioner.drop_database(subdomain)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to drop database of unregistered tenant %s: %s", subdomain, e)
