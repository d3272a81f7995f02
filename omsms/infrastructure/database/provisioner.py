# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database provisioning.

Creates a dedicated PostgreSQL database for a new tenant, applies the tenant
schema and inserts the seed rows. Provisioning is all-or-nothing: if any step
fails the half-built database is dropped before the error is raised, so a
retry with the same subdomain starts from a clean slate. The one exception is
a CREATE DATABASE refused because the name is taken: that database was not
created by this call and is left untouched.

CREATE DATABASE and DROP DATABASE cannot run inside a transaction block, so
they are issued on a master connection switched to AUTOCOMMIT.

Example:
    provisioner = SchemaProvisioner(master_engine, settings.tenant_db)
    database_url = await provisioner.provision("tnt_123", "acme")
"""

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Callable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from omsms.infrastructure.database.exceptions import TenantProvisioningError
from omsms.infrastructure.database.registry import normalize_subdomain
from omsms.infrastructure.database.schema import build_schema_steps
from omsms.infrastructure.database.seeds import seed_tenant_database

if TYPE_CHECKING:
    from omsms.core.config.settings import TenantDatabaseSettings

logger = logging.getLogger(__name__)

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,49}$")

# PostgreSQL SQLSTATE for "database already exists"
DUPLICATE_DATABASE = "42P04"


class SchemaProvisioner:
    """Creates, initializes and drops tenant databases.

    Attributes:
        master_engine: Engine connected to the master database server.
    """

    def __init__(
        self,
        master_engine: AsyncEngine,
        settings: "TenantDatabaseSettings",
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
    ) -> None:
        """Initialize the provisioner.

        Args:
            master_engine: Engine used for CREATE/DROP DATABASE.
            settings: Tenant database settings (name prefix, URL template, timeout).
            engine_factory: Callable creating an AsyncEngine from a URL.
        """
        self.master_engine = master_engine
        self._settings = settings
        self._engine_factory = engine_factory

    def database_name(self, subdomain: str) -> str:
        """Compute the physical database name for a subdomain.

        Args:
            subdomain: Tenant subdomain.

        Returns:
            Prefixed database name.

        Raises:
            ValueError: If the subdomain is not a valid database name suffix.
        """
        key = normalize_subdomain(subdomain)
        if not SUBDOMAIN_PATTERN.match(key):
            raise ValueError(
                f"Invalid subdomain '{subdomain}': use lowercase letters, digits "
                "and hyphens, starting with a letter or digit (max 50 characters)"
            )
        return f"{self._settings.database_prefix}{key}"

    def database_url(self, subdomain: str) -> str:
        """Compute the connection URL of a tenant database."""
        return self._settings.build_url(self.database_name(subdomain))

    async def provision(self, tenant_id: str, subdomain: str) -> str:
        """Create and initialize the database of a new tenant.

        Args:
            tenant_id: Tenant identifier, used for logging.
            subdomain: Tenant subdomain.

        Returns:
            Connection URL of the new database.

        Raises:
            ValueError: If the subdomain is invalid (nothing is created).
            TenantProvisioningError: If any step fails. Unless the database
                already existed, it has been dropped by the time this is raised.
        """
        key = normalize_subdomain(subdomain)
        database_name = self.database_name(key)
        database_url = self._settings.build_url(database_name)

        logger.info("Provisioning database %s for tenant %s (%s)", database_name, key, tenant_id)

        try:
            await asyncio.wait_for(
                self._provision(key, database_name, database_url),
                timeout=self._settings.provision_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "Provisioning timed out for tenant %s after %.0fs",
                key,
                self._settings.provision_timeout,
            )
            await self._cleanup(database_name)
            raise TenantProvisioningError(
                key, "provisioning timed out", database_name=database_name, cause=e
            ) from e
        except Exception as e:
            logger.error("Provisioning failed for tenant %s: %s", key, e)
            if _is_duplicate_database(e):
                # Not created by this call; it may belong to a concurrent provisioning run.
                logger.warning("Database %s already exists, leaving it in place", database_name)
            else:
                await self._cleanup(database_name)
            raise TenantProvisioningError(
                key, str(e), database_name=database_name, cause=e
            ) from e
        except asyncio.CancelledError:
            await self._cleanup(database_name)
            raise

        logger.info("Tenant database %s provisioned for %s", database_name, key)
        return database_url

    async def drop_database(self, subdomain: str) -> None:
        """Drop the database of a tenant if it exists.

        Args:
            subdomain: Tenant subdomain.

        Raises:
            ValueError: If the subdomain is invalid.
            SQLAlchemyError: If the DROP DATABASE statement fails.
        """
        database_name = self.database_name(subdomain)
        await self._drop_database(database_name)
        logger.info("Dropped tenant database %s", database_name)

    async def _provision(self, subdomain: str, database_name: str, database_url: str) -> None:
        await self._create_database(database_name)

        engine = self._engine_factory(database_url, poolclass=NullPool)
        try:
            async with engine.begin() as conn:
                await self._apply_schema(conn, subdomain)
                await seed_tenant_database(conn, subdomain)
        finally:
            try:
                await engine.dispose()
            except (SQLAlchemyError, OSError) as e:
                logger.warning("Error disposing provisioning engine for %s: %s", subdomain, e)

    async def _apply_schema(self, conn: AsyncConnection, subdomain: str) -> None:
        steps = build_schema_steps()
        logger.info("Applying %d schema steps for tenant %s", len(steps), subdomain)
        for step in steps:
            logger.debug("Applying %s %s", step.kind, step.name)
            await conn.execute(step.statement)
        logger.info("Schema applied for tenant %s", subdomain)

    async def _create_database(self, database_name: str) -> None:
        async with self.master_engine.connect() as conn:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            await conn.execute(text(f"CREATE DATABASE {_quote(database_name)}"))
        logger.info("Created database %s", database_name)

    async def _drop_database(self, database_name: str) -> None:
        async with self.master_engine.connect() as conn:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            await conn.execute(text(f"DROP DATABASE IF EXISTS {_quote(database_name)}"))

    async def _cleanup(self, database_name: str) -> None:
        try:
            await self._drop_database(database_name)
            logger.info("Cleaned up failed database %s", database_name)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to clean up database %s: %s", database_name, e)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _is_duplicate_database(error: BaseException) -> bool:
    orig = getattr(error, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == DUPLICATE_DATABASE
