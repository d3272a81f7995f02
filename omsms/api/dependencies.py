# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints:
- Resolve the tenant routing key of a request
- Get the tenant database engine or a tenant database session
- Get the gateway itself (for health and admin endpoints)

Gateway errors are mapped to HTTP status codes here, at the edge:

    missing tenant key        -> 400
    TenantNotFoundError       -> 404
    TenantSuspendedError      -> 403
    TenantConnectionError     -> 503
    gateway not initialized   -> 503

Example:
    @router.get("/vehicles")
    async def list_vehicles(db: AsyncSession = Depends(get_tenant_db)):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from omsms.core.config import get_settings
from omsms.infrastructure.database.exceptions import (
    TenantConnectionError,
    TenantGatewayError,
    TenantNotFoundError,
    TenantSuspendedError,
)
from omsms.infrastructure.database.tenant_manager import TenantDatabaseManager
from omsms.utils.logging import bind_context

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"

# Tenant database gateway singleton
_tenant_db_manager: TenantDatabaseManager | None = None


async def init_gateway(manager: TenantDatabaseManager | None = None) -> TenantDatabaseManager:
    """Initialize the tenant database gateway.

    Args:
        manager: Pre-built manager to install (tests); built from settings if None.

    Returns:
        The installed manager.
    """
    global _tenant_db_manager
    _tenant_db_manager = manager or TenantDatabaseManager(get_settings())
    return _tenant_db_manager


async def close_gateway() -> None:
    """Close all tenant and master database connections."""
    global _tenant_db_manager

    if _tenant_db_manager:
        await _tenant_db_manager.close_all()
        _tenant_db_manager = None


def get_gateway() -> TenantDatabaseManager:
    """Get the tenant database gateway.

    Raises:
        HTTPException: 503 if the gateway is not initialized.
    """
    if not _tenant_db_manager:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tenant database manager not initialized",
        )
    return _tenant_db_manager


def extract_tenant_key(request: Request) -> str | None:
    """Extract the tenant routing key from a request.

    Priority:
    1. X-Tenant-ID header
    2. First label of the host name, when it has more than two labels
       (acme.omsms.com -> acme), except www

    Args:
        request: Incoming HTTP request.

    Returns:
        Lowercase tenant key, or None if the request carries none.
    """
    header_value = request.headers.get(TENANT_HEADER)
    if header_value and header_value.strip():
        return header_value.strip().lower()

    host = request.headers.get("host", "").split(":")[0].lower()
    labels = host.split(".")
    if len(labels) > 2 and labels[0] and labels[0] != "www":
        return labels[0]

    return None


def raise_for_gateway_error(error: TenantGatewayError) -> None:
    """Translate a gateway error into the matching HTTPException.

    Raises:
        HTTPException: Always.
    """
    if isinstance(error, TenantNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant not found: {error.subdomain}",
        ) from error
    if isinstance(error, TenantSuspendedError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Tenant is {error.status}: {error.subdomain}",
        ) from error
    if isinstance(error, TenantConnectionError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tenant database unavailable",
        ) from error

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Tenant database error",
    ) from error


async def get_tenant_connection(request: Request) -> AsyncEngine:
    """Get the database engine of the request's tenant.

    Also binds the tenant key to the structured logging context and stores
    it on ``request.state.tenant``.

    Args:
        request: HTTP request.

    Returns:
        AsyncEngine bound to the tenant database.

    Raises:
        HTTPException: 400, 403, 404 or 503 as listed in the module docstring.
    """
    tenant_key = extract_tenant_key(request)
    if not tenant_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant identifier required",
        )

    manager = get_gateway()
    request.state.tenant = tenant_key
    bind_context(tenant=tenant_key)

    try:
        return await manager.get_connection(tenant_key)
    except TenantGatewayError as e:
        raise_for_gateway_error(e)


async def get_tenant_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get a session on the request's tenant database.

    Committed when the endpoint returns, rolled back on error.

    Yields:
        AsyncSession for the tenant database.
    """
    engine = await get_tenant_connection(request)

    async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
