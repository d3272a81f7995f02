# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine and session factory for the master (registry) database.

The master database stores the tenant registry: one row per tenant with its
subdomain, dedicated database URL and status. The engine created here is
owned by the TenantConnectionRouter, which disposes it on shutdown.

Example:
    engine = create_master_engine(settings)
    sessionmaker = create_master_sessionmaker(engine)

    async with sessionmaker() as session:
        tenants = (await session.scalars(select(Tenant))).all()
"""

from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from omsms.core.config.settings import Settings


class MasterDatabaseError(Exception):
    """The master database engine could not be configured.

    Attributes:
        cause: The error raised by SQLAlchemy or the URL parser.
    """

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Cannot configure master database engine: {cause}")
        self.cause = cause


def create_master_engine(settings: "Settings") -> AsyncEngine:
    """Create the master database engine.

    Args:
        settings: Supplies the master URL, pool sizes and debug echo.

    Returns:
        AsyncEngine bound to the master database.

    Raises:
        MasterDatabaseError: If the URL or pool options are rejected.
    """
    try:
        return create_async_engine(
            settings.master_db.url,
            pool_size=settings.master_db.pool_size,
            max_overflow=settings.master_db.max_overflow,
            pool_pre_ping=True,
            pool_recycle=1800,
            echo=settings.debug,
        )
    except (SQLAlchemyError, ValueError) as e:
        raise MasterDatabaseError(e) from e


def create_master_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a sessionmaker for the master database.

    Args:
        engine: Master database engine.

    Returns:
        async_sessionmaker producing AsyncSession objects.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ping(engine: AsyncEngine) -> None:
    """Run a trivial round-trip query against an engine.

    Args:
        engine: Engine to probe.

    Raises:
        SQLAlchemyError: If the database cannot be reached.
        OSError: If the network connection fails below the driver.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
