# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant registry client.

Translates a routing key (the tenant subdomain) into the connection metadata
stored in the master database. Nothing is cached here; every call reaches the
master database, so status changes are observed on every connection-cache
miss. Caching belongs to the TenantConnectionRouter.

Example:
    registry = TenantRegistry(create_master_sessionmaker(engine))
    record = await registry.resolve("acme")
    print(record.database_url)
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from omsms.infrastructure.database.exceptions import (
    TenantAlreadyExistsError,
    TenantConnectionError,
    TenantNotFoundError,
    TenantSuspendedError,
)
from omsms.infrastructure.database.models.master.tenant import Tenant, TenantStatus

logger = logging.getLogger(__name__)


def normalize_subdomain(subdomain: str) -> str:
    """Normalize a routing key to its canonical lowercase form."""
    return subdomain.strip().lower()


@dataclass(frozen=True)
class TenantRecord:
    """Connection metadata for a single tenant.

    Attributes:
        tenant_id: Opaque, immutable tenant identifier.
        subdomain: Unique routing key.
        database_url: Connection URL of the tenant's dedicated database.
        status: One of active, inactive, suspended.
    """

    tenant_id: str
    subdomain: str
    database_url: str
    status: str

    @property
    def is_active(self) -> bool:
        """Check if the tenant may be routed to."""
        return self.status == TenantStatus.ACTIVE.value


class TenantRegistry:
    """Reads and updates tenant records in the master database.

    Attributes:
        lookup_timeout: Seconds allowed for a single master database call.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        lookup_timeout: float = 5.0,
    ) -> None:
        """Initialize the registry client.

        Args:
            sessionmaker: Session factory bound to the master database.
            lookup_timeout: Seconds allowed for a single master database call.
        """
        self._sessionmaker = sessionmaker
        self.lookup_timeout = lookup_timeout

    async def resolve(self, subdomain: str) -> TenantRecord:
        """Resolve a routing key to a routable tenant.

        Args:
            subdomain: Tenant routing key.

        Returns:
            TenantRecord of an active tenant.

        Raises:
            TenantNotFoundError: If no tenant matches the key.
            TenantSuspendedError: If the tenant is not active.
            TenantConnectionError: If the master database lookup fails or times out.
        """
        key = normalize_subdomain(subdomain)
        record = await self.lookup(key)

        if record is None:
            logger.warning("Tenant not found: %s", key)
            raise TenantNotFoundError(key)

        if not record.is_active:
            logger.warning("Tenant is not active: %s (status=%s)", key, record.status)
            raise TenantSuspendedError(key, record.status)

        return record

    async def lookup(self, subdomain: str) -> TenantRecord | None:
        """Fetch a tenant record regardless of its status.

        Args:
            subdomain: Tenant routing key.

        Returns:
            TenantRecord, or None if the key is not registered.

        Raises:
            TenantConnectionError: If the master database lookup fails or times out.
        """
        key = normalize_subdomain(subdomain)
        try:
            return await asyncio.wait_for(self._fetch(key), timeout=self.lookup_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Tenant registry lookup timed out for %s after %.1fs", key, self.lookup_timeout)
            raise TenantConnectionError(key, e) from e
        except SQLAlchemyError as e:
            logger.error("Tenant registry lookup failed for %s: %s", key, e)
            raise TenantConnectionError(key, e) from e

    async def exists(self, subdomain: str) -> bool:
        """Check whether a subdomain is already registered."""
        return await self.lookup(subdomain) is not None

    async def register(
        self,
        tenant_id: str,
        subdomain: str,
        database_url: str,
        tenant_name: str | None = None,
        status: str = TenantStatus.ACTIVE.value,
    ) -> TenantRecord:
        """Insert a new tenant record.

        Args:
            tenant_id: Opaque tenant identifier.
            subdomain: Unique routing key.
            database_url: Connection URL of the provisioned database.
            tenant_name: Optional display name.
            status: Initial status.

        Returns:
            The stored TenantRecord.

        Raises:
            TenantAlreadyExistsError: If the subdomain or tenant id is taken.
            TenantConnectionError: If the master database write fails.
        """
        key = normalize_subdomain(subdomain)
        status = TenantStatus(status).value

        async with self._sessionmaker() as session:
            session.add(
                Tenant(
                    tenant_id=tenant_id,
                    tenant_name=tenant_name,
                    subdomain=key,
                    database_url=database_url,
                    status=status,
                )
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise TenantAlreadyExistsError(key) from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Failed to register tenant %s: %s", key, e)
                raise TenantConnectionError(key, e) from e

        logger.info("Registered tenant %s (%s)", key, tenant_id)
        return TenantRecord(
            tenant_id=tenant_id,
            subdomain=key,
            database_url=database_url,
            status=status,
        )

    async def set_status(self, subdomain: str, status: str) -> TenantRecord:
        """Change a tenant's status (administrative action).

        Args:
            subdomain: Tenant routing key.
            status: New status (active, inactive or suspended).

        Returns:
            The updated TenantRecord.

        Raises:
            ValueError: If the status is not a known tenant status.
            TenantNotFoundError: If no tenant matches the key.
            TenantConnectionError: If the master database write fails.
        """
        key = normalize_subdomain(subdomain)
        status = TenantStatus(status).value

        async with self._sessionmaker() as session:
            try:
                result = await session.execute(select(Tenant).where(Tenant.subdomain == key))
                tenant = result.scalar_one_or_none()
                if tenant is None:
                    raise TenantNotFoundError(key)

                tenant.status = status
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Failed to update status for tenant %s: %s", key, e)
                raise TenantConnectionError(key, e) from e

            record = TenantRecord(
                tenant_id=tenant.tenant_id,
                subdomain=tenant.subdomain,
                database_url=tenant.database_url,
                status=tenant.status,
            )

        logger.info("Tenant %s status set to %s", key, status)
        return record

    async def _fetch(self, subdomain: str) -> TenantRecord | None:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(
                    Tenant.tenant_id,
                    Tenant.subdomain,
                    Tenant.database_url,
                    Tenant.status,
                ).where(Tenant.subdomain == subdomain)
            )
            row = result.one_or_none()

        if row is None:
            return None
        return TenantRecord(
            tenant_id=row.tenant_id,
            subdomain=row.subdomain,
            database_url=row.database_url,
            status=row.status,
        )
