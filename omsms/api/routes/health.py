# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database health endpoint.

Reports reachability of the master database and of every tenant database
with an open connection pool.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from omsms.api.dependencies import get_gateway
from omsms.infrastructure.database.tenant_manager import TenantDatabaseManager

logger = logging.getLogger(__name__)

router = APIRouter()


class DatabaseHealthResponse(BaseModel):
    """Database health check response model."""

    status: str = Field(description="healthy or unhealthy")
    master: bool = Field(description="Whether the master database is reachable")
    tenants: dict[str, bool] = Field(
        default_factory=dict,
        description="Reachability of each tenant database with a cached connection",
    )
    checked_at: datetime = Field(description="When health was checked")


@router.get("/health/database", response_model=DatabaseHealthResponse)
async def database_health(
    response: Response,
    manager: TenantDatabaseManager = Depends(get_gateway),
) -> DatabaseHealthResponse:
    """Check the master and cached tenant databases.

    Responds with 503 when any probed database is unreachable.
    """
    health = await manager.check_health()

    if not health.is_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Database health check unhealthy: master=%s failing_tenants=%s",
            health.master,
            [key for key, ok in health.tenants.items() if not ok],
        )

    return DatabaseHealthResponse(
        status="healthy" if health.is_healthy else "unhealthy",
        master=health.master,
        tenants=health.tenants,
        checked_at=datetime.now(timezone.utc),
    )
